"""Read expression files, plain or archived."""
from pathlib import Path
import tarfile
import tempfile
from typing import Callable, List
import zipfile

import py7zr
from pydantic import BaseModel, ConfigDict, Field, FilePath


class ExpressionSource(BaseModel):
    """
    A file holding one arithmetic expression per line.

    Supported formats:
        - .txt (read directly)
        - .zip, .tar.xz, .7z (the first .txt member is read)
    """

    model_config = ConfigDict(frozen=True)

    path: FilePath = Field(..., description="Plain text file or archive containing expressions")

    @property
    def archive_format(self) -> str:
        """Return the format key used to pick a reader, e.g. ".txt" or ".tar.xz"."""
        if self.path.suffixes[-2:] == [".tar", ".xz"]:
            return ".tar.xz"
        return self.path.suffix

    def read_text(self) -> str:
        """
        Return the expression text held by the source.

        :return: Raw file content
        :rtype: str
        :raises ValueError: If the format is unsupported or an archive holds no .txt file
        """
        readers: dict[str, Callable[[Path], str]] = {
            ".txt": lambda path: path.read_text(encoding="utf-8"),
            ".zip": self._read_zip,
            ".tar.xz": self._read_tar_xz,
            ".7z": self._read_7z,
        }
        reader = readers.get(self.archive_format)
        if reader is None:
            raise ValueError(f"📄❌ Unsupported archive format: {self.archive_format}")
        return reader(self.path)

    def read_expressions(self) -> List[str]:
        """Return the non-empty, stripped lines of the source."""
        return [line.strip() for line in self.read_text().splitlines() if line.strip()]

    @staticmethod
    def _first_txt(names: List[str], archive_kind: str) -> str:
        txt_files = [name for name in names if name.endswith(".txt")]
        if not txt_files:
            raise ValueError(f"📄❌ No .txt file found in {archive_kind} archive")
        return txt_files[0]

    def _read_zip(self, path: Path) -> str:
        with zipfile.ZipFile(path, "r") as zf:
            member = self._first_txt(zf.namelist(), "zip")
            return zf.read(member).decode("utf-8")

    def _read_tar_xz(self, path: Path) -> str:
        with tarfile.open(path, "r:xz") as tf:
            member = self._first_txt([m.name for m in tf.getmembers() if m.isfile()], "tar.xz")
            extracted = tf.extractfile(member)
            return extracted.read().decode("utf-8")

    def _read_7z(self, path: Path) -> str:
        # py7zr only extracts to disk; use a throwaway directory
        with tempfile.TemporaryDirectory() as tmpdir, py7zr.SevenZipFile(path, mode="r") as archive:
            member = self._first_txt(archive.getnames(), "7z")
            archive.extract(path=tmpdir, targets=[member])
            return (Path(tmpdir) / member).read_text(encoding="utf-8")
