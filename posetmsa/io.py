"""Sequence I/O: FASTA reading and writing (plain and gzipped), chunk merging."""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Sequence as SequenceType, Tuple, Union

LOGGER = logging.getLogger(__name__)

HEADER_ATTRIBUTE_SEPARATOR = "|"

PathLike = Union[str, Path]


@dataclass
class Sequence:
    """A named biological sequence."""

    name: str
    seq: str


def _open_text(filepath: PathLike, mode: str) -> IO[str]:
    """Open *filepath* for text I/O, through gzip when it ends with ``.gz``."""
    filepath = Path(filepath)
    if filepath.suffix == ".gz":
        return gzip.open(filepath, mode + "t")
    return open(filepath, mode)


def _record_name(header: str, full_header: bool) -> str:
    if full_header:
        return header
    fields = header.split(maxsplit=1)
    return fields[0] if fields else ""


def parse_fasta(lines: Iterable[str], full_header: bool = False) -> Iterator[Tuple[str, str]]:
    """Yield ``(name, sequence)`` records from FASTA text lines.

    Lines before the first header are ignored.
    """
    name: Optional[str] = None
    body: List[str] = []
    for line in lines:
        line = line.strip()
        if line.startswith(">"):
            if name is not None:
                yield name, "".join(body)
            name, body = _record_name(line[1:], full_header), []
        elif name is not None:
            body.append(line)
    if name is not None:
        yield name, "".join(body)


def read_fasta(filepath: PathLike, full_header: bool = False) -> Iterator[Tuple[str, str]]:
    """Yield (name, sequence) tuples from a plain or gzipped FASTA file.

    The name is the first word of the header unless *full_header* is set.
    """
    with _open_text(filepath, "r") as handle:
        yield from parse_fasta(handle, full_header)


def read_sequences(filepath: PathLike) -> List[Sequence]:
    """Read every record of a FASTA file as :class:`Sequence` objects."""
    return [Sequence(name, seq) for name, seq in read_fasta(filepath)]


def format_fasta(name: str, seq: str, line_width: int = 80) -> str:
    """Render one record, wrapping the sequence at *line_width* characters."""
    if line_width < 1:
        raise ValueError("line_width must be positive")
    body = [seq[i : i + line_width] for i in range(0, len(seq), line_width)] or [""]
    return "\n".join([f">{name}", *body]) + "\n"


def write_fasta(
    filepath: PathLike,
    sequences: Iterable[Union[Tuple[str, str], Sequence]],
    line_width: int = 80,
) -> None:
    """Write ``(name, seq)`` tuples or :class:`Sequence` objects to a FASTA file."""
    with _open_text(filepath, "w") as handle:
        for item in sequences:
            name, seq = (item.name, item.seq) if isinstance(item, Sequence) else item
            handle.write(format_fasta(name, seq, line_width))


def split_chunk_header(header: str) -> Tuple[str, int]:
    """Split ``name|attr|offset`` into ``("name|attr", offset)``."""
    head, sep, tail = header.rpartition(HEADER_ATTRIBUTE_SEPARATOR)
    if not sep:
        raise ValueError(f"chunk header has no offset attribute: {header!r}")
    try:
        offset = int(tail)
    except ValueError:
        raise ValueError(f"chunk header offset is not an integer: {header!r}") from None
    if offset < 0:
        raise ValueError(f"chunk header offset is negative: {header!r}")
    return head, offset


def merge_fasta_chunks(
    chunk_paths: SequenceType[PathLike], output_path: PathLike
) -> int:
    """Merge FASTA chunks back into whole sequences.

    Each chunk header ends with ``|<offset>``, the offset of the chunk within
    its original sequence. Bodies are copied in input order; the header,
    without the offset, is written only for chunks at offset zero so every
    original sequence gets exactly one header. Returns the number of chunks
    copied. Raises ``OSError`` if the output cannot be opened.
    """
    copied = 0
    with open(output_path, "w") as out:
        for chunk_path in chunk_paths:
            for header, seq in read_fasta(chunk_path, full_header=True):
                name, offset = split_chunk_header(header)
                if offset == 0:
                    out.write(f">{name}\n")
                out.write(f"{seq}\n")
                copied += 1
    LOGGER.info("Merged %d chunks from %d files into %s", copied, len(chunk_paths), output_path)
    return copied
