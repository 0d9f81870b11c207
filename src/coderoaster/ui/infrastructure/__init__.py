"""Reference adapters for running the panel outside an editor host."""

from .console_renderer import ConsoleRenderer
from .document_adapter import FileDocumentProvider
from .settings_adapter import SettingsConfigProvider

__all__ = ["ConsoleRenderer", "FileDocumentProvider", "SettingsConfigProvider"]
