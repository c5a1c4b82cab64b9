"""Test doubles for courier collaborators."""

from .fakes import FakeToolExecutor, RecordingObserver, ScriptedInference

__all__ = ["ScriptedInference", "FakeToolExecutor", "RecordingObserver"]
