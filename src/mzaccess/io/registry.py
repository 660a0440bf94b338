from pathlib import Path
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import SpectrumReader


class FileFormat(Enum):
    MGF = auto()
    MZML = auto()
    MZXML = auto()
    UNKNOWN = auto()


# Extension to format mapping
FORMAT_EXTENSIONS: dict[str, FileFormat] = {
    '.mgf': FileFormat.MGF,
    '.mzml': FileFormat.MZML,
    '.mzxml': FileFormat.MZXML,
}


def detect_format(path: Path | str) -> FileFormat:
    """Detect the file format from its extension."""
    suffix = Path(path).suffix.lower()
    return FORMAT_EXTENSIONS.get(suffix, FileFormat.UNKNOWN)


class ReaderRegistry:
    """Registry for spectrum readers with automatic format detection."""

    _readers: dict[FileFormat, type['SpectrumReader']] = {}

    @classmethod
    def register(cls, *formats: FileFormat):
        """Decorator to register a reader class for one or more formats."""
        def decorator(reader_class: type['SpectrumReader']):
            for file_format in formats:
                cls._readers[file_format] = reader_class
            return reader_class
        return decorator

    @classmethod
    def get_reader(cls, path: Path | str) -> 'SpectrumReader':
        """
        Get an unopened reader for a file, detecting its format.

        Raises:
            RuntimeError: If no available reader handles the format.
        """
        path = Path(path)
        file_format = detect_format(path)

        reader_class = cls._readers.get(file_format)
        if reader_class is None:
            raise RuntimeError(
                f"No reader registered for {path} (detected format: {file_format.name})."
            )
        if not reader_class.is_available():
            raise RuntimeError(
                f"The {reader_class.format_name} reader for {path} is not available.\n"
                f"{reader_class.get_installation_instructions()}"
            )
        if file_format == FileFormat.MZXML:
            return reader_class(path, is_mzxml=True)
        return reader_class(path)

    @classmethod
    def list_available(cls) -> dict[str, bool]:
        """List all readers and their availability status."""
        return {
            file_format.name: reader.is_available()
            for file_format, reader in cls._readers.items()
        }
