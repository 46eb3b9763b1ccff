"""Flat-file ledger of the last version built per environment/image."""

import os
import tempfile
from typing import List, Optional

from deploykit.errors import DeployKitError, ParseError
from deploykit.models import VersionLedgerEntry
from deploykit.services.versioning import ledger_key, next_version_from_ledger


class VersionLedger:
    """Reads and rewrites ``environment/image:version`` lines.

    The whole file is read, changed in memory and written back. There is no
    locking; concurrent writers race and the last one wins.
    """

    def __init__(self, ledger_file: str, logger):
        self.ledger_file = ledger_file
        self.logger = logger

    def read(self) -> List[VersionLedgerEntry]:
        return [entry for _, entry in self._read_lines() if entry is not None]

    def current_version(self, environment: str, image: str) -> Optional[int]:
        key = ledger_key(environment, image)
        for entry in self.read():
            if entry.name == key:
                return entry.version
        return None

    def next_version(self, environment: str, image: str) -> int:
        return next_version_from_ledger(self.read(), environment, image)

    def record(self, environment: str, image: str, version: int) -> VersionLedgerEntry:
        new_entry = VersionLedgerEntry(name=ledger_key(environment, image), version=int(version))
        lines = self._read_lines()

        replaced = False
        output: List[str] = []
        for raw_line, entry in lines:
            if entry is not None and entry.name == new_entry.name and not replaced:
                output.append(new_entry.to_line())
                replaced = True
            else:
                output.append(raw_line)

        if not replaced:
            output.append(new_entry.to_line())

        self._write_lines(output)
        self.logger.info(
            "%s %s in %s",
            "Updated" if replaced else "Added",
            new_entry.to_line(),
            self.ledger_file,
        )
        return new_entry

    def _read_lines(self):
        if not os.path.exists(self.ledger_file):
            return []

        try:
            with open(self.ledger_file, "r", encoding="utf-8") as file_obj:
                raw_lines = file_obj.read().splitlines()
        except OSError as exc:
            raise DeployKitError(f"Could not read ledger file '{self.ledger_file}': {exc}") from exc

        parsed = []
        for number, raw_line in enumerate(raw_lines, start=1):
            if not raw_line.strip():
                parsed.append((raw_line, None))
                continue
            parsed.append((raw_line, self._parse_line(raw_line, number)))
        return parsed

    def _parse_line(self, raw_line: str, number: int) -> VersionLedgerEntry:
        name, separator, version = raw_line.strip().rpartition(":")
        if not separator or not name:
            raise ParseError(
                f"Malformed ledger line {number} in '{self.ledger_file}': {raw_line!r}"
            )
        try:
            return VersionLedgerEntry(name=name, version=int(version))
        except ValueError as exc:
            raise ParseError(
                f"Ledger line {number} in '{self.ledger_file}' has a non-integer version: {raw_line!r}"
            ) from exc

    def _write_lines(self, lines: List[str]):
        directory = os.path.dirname(os.path.abspath(self.ledger_file))
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(prefix=".ledger-", suffix=".txt", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                for line in lines:
                    file_obj.write(f"{line}\n")
            os.replace(temp_path, self.ledger_file)
        except OSError as exc:
            raise DeployKitError(f"Could not write ledger file '{self.ledger_file}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
