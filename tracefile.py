# tracefile.py
import re

from cache import ADDRESS_BITS, Command, Op

_HEX = re.compile(r"[0-9a-fA-F]+")


class TraceFormatError(ValueError):
    """A trace line that is not `<r|w> <hex address>`."""

    def __init__(self, reason, line_number=None, line=None, path=None):
        self.reason = reason
        self.line_number = line_number
        self.line = line
        self.path = path
        where = ""
        if path is not None:
            where = f"{path}:"
        if line_number is not None:
            where += f"{line_number}: "
        elif where:
            where += " "
        super().__init__(f"{where}{reason}" + (f" ({line!r})" if line is not None else ""))


def parse_address(text):
    if not _HEX.fullmatch(text):
        raise TraceFormatError(f"invalid hex address {text!r}")
    address = int(text, 16)
    if address >= 1 << ADDRESS_BITS:
        raise TraceFormatError(f"address {text} does not fit in {ADDRESS_BITS} bits")
    return address


def parse_line(line):
    tokens = line.split()
    if len(tokens) != 2:
        raise TraceFormatError(f"expected 2 fields, found {len(tokens)}")
    op, addr = tokens
    if op not in (Op.READ, Op.WRITE):
        raise TraceFormatError(f"unknown operation {op!r}")
    return Command(op, parse_address(addr))


def parse_trace(lines, path=None):
    """Commands of a trace, in order. Blank lines are skipped."""
    commands = []
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            commands.append(parse_line(line))
        except TraceFormatError as e:
            raise TraceFormatError(e.reason, number, line, path) from None
    return commands


def read_trace(path):
    with open(path, "r") as f:
        return parse_trace(f, path)


def format_trace(commands):
    return "".join(f"{c}\n" for c in commands)
