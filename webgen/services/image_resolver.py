"""
Image placeholder resolution.

Scans generated markup for image placeholders, answers what it can
from the client's prompt cache, resolves the remaining distinct
prompts concurrently through an image provider and substitutes the
results back into the text by position.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple
import asyncio
import time

from webgen.config import get_settings
from webgen.models.image_result import ImageResult, ImageSource, lookup_cached_image, placeholder_result
from webgen.models.placeholder import PlaceholderToken, scan_placeholders, substitute_tokens
from webgen.services.image_generation_service import get_image_generation_service
from webgen.services.image_search_service import get_image_search_service
from webgen.utils.logger import get_logger

logger = get_logger("services.image_resolver")

REASON_UNEXPECTED = "Image unavailable"


class ImageProvider(Protocol):
    """Strategy interface for resolving one prompt to an image."""

    provider: str

    async def resolve(self, prompt: str) -> ImageResult:
        """Return an ImageResult; failures come back as placeholders."""


@dataclass(frozen=True)
class ImageResolvedEvent:
    """Emitted as soon as one prompt of a batch has been resolved."""

    prompt: str
    reference: str
    source: ImageSource

    def to_dict(self) -> dict:
        return {
            "type": "imageGenerated",
            "prompt": self.prompt,
            "imagePath": self.reference,
            "source": self.source.value,
        }


OnResolved = Callable[[ImageResolvedEvent], Awaitable[None]]


@dataclass
class ResolutionResult:
    """
    Outcome of resolving one text.

    Attributes:
        text: Text with every resolvable placeholder substituted
        new_images: Prompts resolved by a provider in this call
        cache_hits: Distinct prompts answered from the client cache
        failed: Distinct prompts that resolved to a placeholder
    """

    text: str
    new_images: Dict[str, str] = field(default_factory=dict)
    cache_hits: int = 0
    failed: List[str] = field(default_factory=list)


@dataclass
class ProjectResolutionResult:
    """Outcome of resolving every file of a generated project."""

    files: Dict[str, str]
    new_images: Dict[str, str] = field(default_factory=dict)
    cache_hits: int = 0
    failed: List[str] = field(default_factory=list)


class ImageResolver:
    """
    Resolves image placeholders in generated text.

    Attributes:
        generator: Provider used when generative images are requested
        searcher: Provider used for web image search
    """

    def __init__(self, generator: ImageProvider, searcher: ImageProvider):
        self.generator = generator
        self.searcher = searcher
        self.placeholder_url = get_settings().placeholder_image_url

    def _select_provider(self, use_generative: bool) -> ImageProvider:
        return self.generator if use_generative else self.searcher

    @staticmethod
    def pending_prompts(text: str, cache: Optional[Mapping[str, str]] = None) -> List[str]:
        """Distinct prompts in ``text`` the cache cannot answer."""
        prompts = dict.fromkeys(token.prompt for token in scan_placeholders(text))
        return [prompt for prompt in prompts if lookup_cached_image(prompt, cache) is None]

    async def resolve(
        self,
        text: str,
        cache: Optional[Mapping[str, str]] = None,
        use_generative: bool = True,
        on_resolved: Optional[OnResolved] = None,
    ) -> ResolutionResult:
        """
        Substitute every placeholder in ``text``.

        Args:
            text: Generated markup containing placeholder tokens
            cache: Prompt to image mapping the client already holds
            use_generative: Generate images instead of searching for them
            on_resolved: Awaited once per prompt resolved by a provider

        Returns:
            ResolutionResult; never raises for per-image failures
        """
        tokens = list(scan_placeholders(text))
        if not tokens:
            return ResolutionResult(text=text)

        replacements, new_images, cache_hits, failed = await self._resolve_prompts(
            (token.prompt for token in tokens), cache, use_generative, on_resolved
        )
        return ResolutionResult(
            text=substitute_tokens(text, tokens, replacements),
            new_images=new_images,
            cache_hits=cache_hits,
            failed=failed,
        )

    async def resolve_files(
        self,
        files: Mapping[str, str],
        cache: Optional[Mapping[str, str]] = None,
        use_generative: bool = True,
        on_resolved: Optional[OnResolved] = None,
    ) -> ProjectResolutionResult:
        """
        Substitute placeholders across several files in one batch.

        A prompt shared by several files is resolved once.
        """
        scanned: Dict[str, List[PlaceholderToken]] = {
            path: list(scan_placeholders(content)) for path, content in files.items()
        }
        all_prompts = [token.prompt for tokens in scanned.values() for token in tokens]
        if not all_prompts:
            return ProjectResolutionResult(files=dict(files))

        replacements, new_images, cache_hits, failed = await self._resolve_prompts(
            all_prompts, cache, use_generative, on_resolved
        )
        resolved_files = {
            path: substitute_tokens(files[path], tokens, replacements) if tokens else files[path]
            for path, tokens in scanned.items()
        }
        return ProjectResolutionResult(
            files=resolved_files,
            new_images=new_images,
            cache_hits=cache_hits,
            failed=failed,
        )

    async def _resolve_prompts(
        self,
        prompts: Iterable[str],
        cache: Optional[Mapping[str, str]],
        use_generative: bool,
        on_resolved: Optional[OnResolved],
    ) -> Tuple[Dict[str, str], Dict[str, str], int, List[str]]:
        """
        Resolve distinct prompts: cache first, then one provider call each.

        Returns:
            Tuple of (replacements, new_images, cache_hits, failed)
        """
        replacements: Dict[str, str] = {}
        misses: List[str] = []

        for prompt in dict.fromkeys(prompts):
            cached = lookup_cached_image(prompt, cache)
            if cached is not None:
                replacements[prompt] = cached
            else:
                misses.append(prompt)

        cache_hits = len(replacements)
        new_images: Dict[str, str] = {}
        failed: List[str] = []

        if misses:
            provider = self._select_provider(use_generative)
            started = time.monotonic()
            logger.info(
                f"Resolving {len(misses)} image(s) via {provider.provider} "
                f"({cache_hits} cached)"
            )

            results = await asyncio.gather(
                *(self._resolve_one(provider, prompt, on_resolved) for prompt in misses)
            )

            for prompt, result in zip(misses, results):
                replacements[prompt] = result.reference
                if result.is_cacheable:
                    new_images[prompt] = result.reference
                else:
                    failed.append(prompt)

            logger.info(
                f"Resolved {len(misses) - len(failed)}/{len(misses)} image(s)",
                extra={
                    "provider": provider.provider,
                    "duration_ms": int((time.monotonic() - started) * 1000),
                },
            )

        return replacements, new_images, cache_hits, failed

    async def _resolve_one(
        self,
        provider: ImageProvider,
        prompt: str,
        on_resolved: Optional[OnResolved],
    ) -> ImageResult:
        """Resolve one prompt; any unexpected error becomes a placeholder."""
        try:
            result = await provider.resolve(prompt)
        except Exception as e:
            logger.error(
                f"Image provider raised unexpectedly: {e}",
                extra={"prompt": prompt},
                exc_info=True,
            )
            result = placeholder_result(prompt, REASON_UNEXPECTED, self.placeholder_url)

        if on_resolved is not None:
            event = ImageResolvedEvent(
                prompt=prompt,
                reference=result.reference,
                source=result.source,
            )
            try:
                await on_resolved(event)
            except Exception as e:
                logger.warning(f"Image resolved listener failed: {e}", exc_info=True)

        return result


# Global singleton instance
_image_resolver: Optional[ImageResolver] = None


def get_image_resolver() -> ImageResolver:
    """Get or create the global ImageResolver instance."""
    global _image_resolver
    if _image_resolver is None:
        _image_resolver = ImageResolver(
            generator=get_image_generation_service(),
            searcher=get_image_search_service(),
        )
    return _image_resolver


def close_image_resolver() -> None:
    """Drop the global ImageResolver instance."""
    global _image_resolver
    _image_resolver = None
