# -*- coding: utf-8 -*-

import contextlib
import io
import os
import shutil
import tarfile
from typing import Dict, Iterable, Iterator, NamedTuple

from docker_layer_digest.errors import (
    ArchiveCorruptError,
    ArchiveError,
    ArchiveUnavailableError,
    EntryNotFoundError,
)

CHUNK_SIZE = 1024 * 1024


class ArchiveEntry(NamedTuple):
    name: str
    size: int
    member: tarfile.TarInfo
    archive: tarfile.TarFile


class ArchiveReader(object):
    """
    Sequential reader over an uncompressed tar archive, as written by
    ``docker save``.

    Every read opens the archive, visits each entry in physical order and
    compares its name with the requested one(s). The archive is never loaded
    into memory as a whole; matching entries are copied in chunks.

    When the same name is stored more than once, the last occurrence wins.
    Links are followed to the entry they point to. A link that cannot be
    resolved is reported only when its own name is requested.
    """

    def __init__(self, log, archive_path: str):
        self.log = log
        self.archive_path: str = archive_path

    def entries(self) -> Iterator[ArchiveEntry]:
        """
        Yields all entries of the archive. The body of an entry can only be
        read (see :meth:`open_entry`) before the next entry is requested.

        Once all entries were visited the archive is checked for a proper
        end-of-archive marker, so a truncated archive is reported as corrupt
        instead of looking like a shorter one.
        """
        try:
            tar = tarfile.open(self.archive_path, "r:")
        except tarfile.TarError as e:
            raise ArchiveCorruptError(
                "Could not read '%s' as a tar archive: %s" % (self.archive_path, e)
            ) from e
        except OSError as e:
            raise ArchiveUnavailableError(
                "Could not open archive '%s': %s" % (self.archive_path, e)
            ) from e

        with tar:
            try:
                for member in tar:
                    yield ArchiveEntry(member.name, member.size, member, tar)

                self._check_end_of_archive(tar)
            except tarfile.TarError as e:
                raise ArchiveCorruptError(
                    "Archive '%s' is corrupted: %s" % (self.archive_path, e)
                ) from e
            except OSError as e:
                raise ArchiveUnavailableError(
                    "Could not read archive '%s': %s" % (self.archive_path, e)
                ) from e

    def open_entry(self, entry: ArchiveEntry) -> io.BufferedIOBase:
        """
        Returns the body of the entry most recently yielded by :meth:`entries`.
        """
        try:
            fileobj = entry.archive.extractfile(entry.member)
        except KeyError as e:
            raise EntryNotFoundError(
                "Entry '%s' in archive '%s' links to '%s' which is not present in the archive"
                % (entry.name, self.archive_path, entry.member.linkname)
            ) from e
        except tarfile.TarError as e:
            raise ArchiveCorruptError(
                "Could not read entry '%s' from '%s': %s"
                % (entry.name, self.archive_path, e)
            ) from e
        except OSError as e:
            raise ArchiveUnavailableError(
                "Could not read archive '%s': %s" % (self.archive_path, e)
            ) from e

        if fileobj is None:
            # Directories and other special entries carry no data
            fileobj = io.BytesIO()

        return fileobj

    def read_entry_to_memory(self, name: str, required: bool = False) -> bytes:
        """
        Returns the content of the ``name`` entry.

        A missing entry results in empty content, unless ``required`` is set,
        in which case :class:`EntryNotFoundError` is raised.
        """
        content = self.read_entries([name]).get(name)

        if content is None:
            if required:
                raise EntryNotFoundError(
                    "Entry '%s' not found in archive '%s'" % (name, self.archive_path)
                )
            self.log.debug("Entry '%s' not found in '%s'" % (name, self.archive_path))
            return b""

        return content

    def read_entries(self, names: Iterable[str]) -> Dict[str, bytes]:
        """
        Reads all requested entries in a single pass over the archive.
        Names that are not present in the archive are not part of the result.
        """
        wanted = set(names)
        found = {}

        with contextlib.closing(self.entries()) as entries:
            for entry in entries:
                if entry.name not in wanted:
                    continue

                buf = io.BytesIO()
                self._copy(entry, self.open_entry(entry), buf)
                found[entry.name] = buf.getvalue()

        return found

    def read_entry_to_file(self, name: str, dest_path: str) -> bool:
        """
        Streams the content of the ``name`` entry into the ``dest_path`` file.

        The destination file is created (or truncated) only when a matching
        entry is found. Returns ``True`` if the entry was written and
        ``False`` if the archive does not contain it. On failure the
        destination file is removed.
        """
        written = False

        try:
            with contextlib.closing(self.entries()) as entries:
                for entry in entries:
                    if entry.name != name:
                        continue

                    self.log.debug(
                        "Extracting '%s' (%s bytes) to '%s'..."
                        % (name, entry.size, dest_path)
                    )

                    fileobj = self.open_entry(entry)

                    try:
                        dest = open(dest_path, "wb")
                    except OSError as e:
                        raise ArchiveError(
                            "Could not create '%s': %s" % (dest_path, e)
                        ) from e

                    written = True

                    with dest:
                        self._copy(entry, fileobj, dest)
        except ArchiveError:
            if written:
                self._remove(dest_path)
            raise

        return written

    def _copy(self, entry: ArchiveEntry, fileobj, target):
        try:
            shutil.copyfileobj(fileobj, target, CHUNK_SIZE)
        except tarfile.TarError as e:
            raise ArchiveCorruptError(
                "Could not read entry '%s' from '%s': %s"
                % (entry.name, self.archive_path, e)
            ) from e
        except OSError as e:
            raise ArchiveError(
                "Could not copy entry '%s' from '%s': %s"
                % (entry.name, self.archive_path, e)
            ) from e

    def _check_end_of_archive(self, tar: tarfile.TarFile):
        # tarfile stops silently on a truncated or invalid header, the offset
        # of the next header must hold a full block of zeros instead
        tar.fileobj.seek(tar.offset)
        block = tar.fileobj.read(tarfile.BLOCKSIZE)

        if len(block) != tarfile.BLOCKSIZE or block.count(tarfile.NUL) != len(block):
            raise ArchiveCorruptError(
                "Archive '%s' is truncated or contains an invalid header at offset %s"
                % (self.archive_path, tar.offset)
            )

    def _remove(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
