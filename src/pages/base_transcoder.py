# src/pages/base_transcoder.py - v1
"""Abstract page transcoder: page image to text, run before judging."""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileorganizer.core.models import Page


class BaseTranscoder(ABC):
    """Produces a text transcode for pages that do not have one yet."""

    @abstractmethod
    async def needs_transcode(self, page: Page) -> bool:
        """Whether the page still lacks a text transcode."""

    @abstractmethod
    async def transcode(self, page: Page) -> str:
        """Transcode one page and return its text."""


class NoopTranscoder(BaseTranscoder):
    """Transcoder for deployments where pages are judged from images only."""

    async def needs_transcode(self, page: Page) -> bool:
        return False

    async def transcode(self, page: Page) -> str:
        return ""
