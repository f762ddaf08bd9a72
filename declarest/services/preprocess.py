"""
Preprocessor chain - ordered request transformers/validators.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from declarest.request import Request


logger = logging.getLogger("declarest.preprocess")

PreprocessorFn = Callable[[Request], Union[None, Awaitable[None]]]


async def run_preprocessors(preprocessors: Iterable[PreprocessorFn], request: Request) -> None:
    """
    Run preprocessors strictly in sequence.

    Each preprocessor may be sync or async; an awaitable result is awaited
    before the next one starts. The first exception aborts the chain and
    propagates unchanged.

    Args:
        preprocessors: Class-level then method-level preprocessors
        request: Request the preprocessors inspect and enrich
    """
    for preprocessor in preprocessors:
        logger.debug(f"Running preprocessor {_name(preprocessor)} for {request!r}")
        result: Optional[Any] = preprocessor(request)
        if inspect.isawaitable(result):
            await result


def _name(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)
