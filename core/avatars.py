AVATAR_OPTIONS = [
    "🐶", "🐱", "🐭", "🐹", "🐰", "🦊", "🐻", "🐼", "🐨", "🐯",
    "🦁", "🐮", "🐸", "🐵", "🐔", "🐧", "🐦", "🐤", "🦆",
    "🦅", "🦉", "🦇", "🐺", "🐗", "🐴", "🦄", "🐝", "🐛", "🦋",
    "🐌", "🐞", "🐜", "🦟", "🦗", "🕷️", "🦂", "🐢", "🐍", "🦎",
    "🦖", "🦕", "🐙", "🦑", "🦐", "🦞", "🦀", "🐡", "🐠", "🐟",
    "🐬", "🐳", "🐋", "🦈", "🐊", "🐅", "🐆", "🦓", "🦍", "🦧",
    "🐘", "🦛", "🦏", "🐪", "🐫", "🦒", "🦘", "🐃", "🐂", "🐄",
    "🐎", "🐏", "🐑", "🦙", "🐐", "🦏", "🦛", "🦘", "🐨",
    "🐼", "🐻", "🦊", "🐺", "🐗", "🐴", "🦄", "🐝", "🐛", "🦋",
]


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def id_hash(participant_id: str) -> int:
    """31-multiplier string hash over UTF-16 code units, wrapped to signed 32 bits.

    Browser clients compute the same value, so avatars match on both sides.
    """
    raw = participant_id.encode("utf-16-le")
    h = 0
    for i in range(0, len(raw), 2):
        code_unit = raw[i] | (raw[i + 1] << 8)
        h = _to_int32((h << 5) - h + code_unit)
    return h


def generate_avatar(participant_id: str) -> str:
    return AVATAR_OPTIONS[abs(id_hash(participant_id)) % len(AVATAR_OPTIONS)]
