"""Chinese uppercase (大写) spelling of RMB amounts for contract totals."""

import math

CN_NUM = ["零", "壹", "贰", "叁", "肆", "伍", "陆", "柒", "捌", "玖"]
CN_UNIT = ["", "拾", "佰", "仟"]
CN_GROUP = ["", "万", "亿", "兆"]
CN_DEC = ["角", "分"]


def _spell_chunk(chunk: str) -> str:
    """Spell a chunk of up to four digits; leading and inner zero runs become one 零."""
    out = ""
    zero_pending = False
    for i, ch in enumerate(chunk):
        digit = int(ch)
        unit_index = len(chunk) - 1 - i
        if digit == 0:
            zero_pending = True
            continue
        if zero_pending:
            out += CN_NUM[0]
        zero_pending = False
        out += CN_NUM[digit] + CN_UNIT[unit_index]
    return out.rstrip(CN_NUM[0])


def rmb_uppercase(amount: float) -> str:
    """Spell an amount, e.g. ``12345.67 -> 壹万贰仟叁佰肆拾伍元陆角柒分``.

    Rounds half-up to the cent. Negative amounts are prefixed with 负.
    Returns "" for NaN/inf and for amounts beyond the 兆 group.
    """
    if amount is None or not math.isfinite(amount):
        return ""

    cents = math.floor(abs(amount) * 100 + 0.5)
    sign = "负" if amount < 0 and cents else ""
    integer, dec = divmod(cents, 100)

    digits = str(integer)
    if len(digits) > 4 * len(CN_GROUP):
        return ""
    out = ""
    group_index = 0
    for end in range(len(digits), 0, -4):
        chunk = digits[max(0, end - 4):end]
        spelled = _spell_chunk(chunk)
        if spelled:
            out = spelled + CN_GROUP[group_index] + out
        group_index += 1

    out = sign + (out or CN_NUM[0]) + "元"

    if dec == 0:
        return out + "整"

    jiao, fen = divmod(dec, 10)
    if jiao:
        out += CN_NUM[jiao] + CN_DEC[0]
    if fen:
        out += CN_NUM[fen] + CN_DEC[1]
    return out
