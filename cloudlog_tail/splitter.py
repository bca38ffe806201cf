"""
Split a growing ADIF byte buffer into complete records.

ADIF fields are written as ``<NAME:LENGTH>DATA`` so field data is skipped by
length instead of being scanned for tags; an ``<eor>`` typed into a comment
field therefore never ends a record. A record ends at ``<EOR>`` (or at
``<EOH>`` for the file header) once at least some content precedes the
terminator. If a terminator inside field data is immediately followed by
another field tag, the declared length is taken to be wrong and the record
is cut at that terminator instead. Bytes after the last complete record are
handed back to the caller, who prepends them to the next read.
"""

import re
from dataclasses import dataclass

TAG_RE = re.compile(rb"<([A-Za-z0-9_]+)(?::(\d+)(?::[A-Za-z])?)?>")

# A terminator inside field data that is directly followed by the next field tag:
# the declared length is wrong and runs on into the following record.
OVERRUN_RE = re.compile(rb"<(eor|eoh)>\s*<[A-Za-z0-9_]+:\d+(?::[A-Za-z])?>", re.IGNORECASE)

END_OF_RECORD = b"eor"
END_OF_HEADER = b"eoh"


@dataclass(frozen=True)
class Record:
    raw: bytes
    header: bool = False
    # cut at a terminator that a bad field length would have skipped
    recovered: bool = False

    def __len__(self):
        return len(self.raw)


def split(buffer: bytes) -> tuple[list[Record], bytes]:
    """
    Return the complete records at the start of ``buffer`` and the leftover tail.

    Cut points only depend on the bytes before them, so splitting a buffer in
    one go or feeding it piecewise (remainder + next chunk) yields the same
    records.
    """
    records = []
    size = len(buffer)
    start = pos = 0
    has_content = False

    while True:
        lt = buffer.find(b"<", pos)
        if buffer[pos:size if lt < 0 else lt].strip():
            has_content = True
        if lt < 0:
            break

        match = TAG_RE.match(buffer, lt)
        if match is None:
            if buffer.find(b">", lt) < 0:
                # tag still being written
                break
            has_content = True
            pos = lt + 1
            continue

        name = match.group(1).lower()
        if name in (END_OF_RECORD, END_OF_HEADER):
            pos = match.end()
            if has_content:
                records.append(Record(buffer[start:pos], header=name == END_OF_HEADER))
                start = pos
                has_content = False
            continue

        has_content = True
        pos = match.end()
        if match.group(2) is not None:
            data_end = pos + int(match.group(2))
            overrun = OVERRUN_RE.search(buffer, pos, min(data_end, size))
            if overrun is not None:
                pos = overrun.end(1) + 1
                records.append(Record(
                    buffer[start:pos],
                    header=overrun.group(1).lower() == END_OF_HEADER,
                    recovered=True,
                ))
                start = pos
                has_content = False
                continue
            pos = data_end
            if pos > size:
                break

    remainder = buffer[start:]
    assert sum(len(r) for r in records) + len(remainder) == size
    return records, remainder
