"""
Top-level recovery boundary for the app's render/dispatch step.

Wraps a callable; when it raises, the failure is kept in ``last_error`` and
a localized fallback notice is returned instead. The wrapped callable is
not called again until ``reset()`` clears the error.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FallbackNotice:
    title: str
    message: str
    retry_label: str


FALLBACK_NOTICES = {
    "tr": FallbackNotice(
        title="Bir Hata Oluştu",
        message="Uygulama beklenmedik bir hatayla karşılaştı. Lütfen tekrar deneyin.",
        retry_label="Tekrar Dene",
    ),
    "en": FallbackNotice(
        title="Something Went Wrong",
        message="The app ran into an unexpected error. Please try again.",
        retry_label="Try Again",
    ),
}


def fallback_notice(lang: str = "tr") -> FallbackNotice:
    return FALLBACK_NOTICES["en"] if lang == "en" else FALLBACK_NOTICES["tr"]


class ErrorBoundary(Generic[T]):
    """
    Composition wrapper around a render function.

    Args:
        render: Produces the normal view
        fallback: Builds the view shown after a failure from the error;
            defaults to the localized FallbackNotice
        lang: Language of the default notice
    """

    def __init__(
        self,
        render: Callable[..., T],
        fallback: Optional[Callable[[BaseException], Any]] = None,
        lang: str = "tr",
    ):
        self._render = render
        self._fallback = fallback
        self.lang = lang
        self.last_error: Optional[BaseException] = None

    @property
    def has_error(self) -> bool:
        return self.last_error is not None

    def _fallback_view(self) -> Any:
        if self._fallback is not None:
            return self._fallback(self.last_error)
        return fallback_notice(self.lang)

    def render(self, *args, **kwargs) -> Union[T, Any]:
        if self.last_error is not None:
            return self._fallback_view()
        try:
            return self._render(*args, **kwargs)
        except Exception as e:
            self.last_error = e
            logger.error(f"Render failed: {e}", exc_info=True)
            return self._fallback_view()

    __call__ = render

    def reset(self) -> None:
        """Manual retry: clear the error so the next render runs the wrapped view."""
        self.last_error = None
