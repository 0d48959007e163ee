from __future__ import annotations

import base64
import binascii
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable
from urllib.parse import unquote_to_bytes


class MediaError(ValueError):
    """Raised when a media payload cannot be decoded."""


class MediaPayload:
    """Opaque media text together with a handle on its decoded content.

    The text is what gets written back into a document. Decoding happens
    elsewhere; whoever decodes calls :meth:`resolve` or :meth:`fail`.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.future: Future[Any] = Future()

    def __repr__(self) -> str:
        state = "ready" if self.ready else "pending"
        preview = self.source if len(self.source) <= 32 else self.source[:32] + "..."
        return f"MediaPayload({preview!r}, {state})"

    @property
    def ready(self) -> bool:
        return self.future.done() and self.future.exception() is None

    @property
    def decoded(self) -> Any:
        if not self.ready:
            return None
        return self.future.result()

    def resolve(self, value: Any) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)

    def add_done_callback(self, callback: Callable[[MediaPayload], None]) -> None:
        self.future.add_done_callback(lambda _future: callback(self))


MediaDecoder = Callable[[MediaPayload], None]


def decode_data_url(text: str) -> bytes:
    if not text.startswith("data:"):
        raise MediaError(f"Not a data URL: {text[:32]!r}.")
    header, sep, data = text[5:].partition(",")
    if not sep:
        raise MediaError("Data URL has no ',' separating header and payload.")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(data, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise MediaError(f"Invalid base64 payload in data URL: {exc}.") from exc
    return unquote_to_bytes(data)


def decode_now(payload: MediaPayload) -> None:
    """Decode on the calling thread."""
    try:
        payload.resolve(decode_data_url(payload.source))
    except MediaError as exc:
        payload.fail(exc)


class ThreadedMediaDecoder:
    """Decodes payloads on a thread pool so loading never waits on media."""

    def __init__(self, max_workers: int | None = None) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="media")
        self._pending: list[Future[None]] = []

    def __call__(self, payload: MediaPayload) -> None:
        self._pending.append(self._executor.submit(decode_now, payload))

    def wait(self) -> None:
        pending, self._pending = self._pending, []
        for future in pending:
            future.result()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> ThreadedMediaDecoder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
