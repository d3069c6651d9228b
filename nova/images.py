"""Image pipeline for Nova.

Every file under ``assets/img`` goes through a fixed chain of optimizers
chosen by extension and lands in ``dist/assets/img``. Results are cached by
content hash so unchanged images skip the (slow) optimizers on later runs.

Key classes:
- BaseImageOptimizer: Interface shared by every optimizer.
- MozjpegOptimizer: Progressive JPEG re-encoding through Pillow.
- ExternalOptimizer: Base for optimizers that shell out to a binary
  (gifsicle, jpeg-recompress, svgo, optipng, pngquant).
- ImageOptimizerChain: Ordered set of optimizers applied to one file.
- ImageCache: On-disk cache of optimized bytes keyed by source content.
"""

from __future__ import annotations

import hashlib
import io
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image

from .errors import PipelineError
from .executable_utils import find_executable, warn_missing
from .manifest import DIST_IMG_DIR, IMAGE_CACHE_DIR, IMG_SOURCES, expand, glob_base
from .utils import format_size, write_if_changed


class BaseImageOptimizer(ABC):
    """Base class for image optimizers.

    Each subclass handles one tool. Optimizers receive and return raw bytes so
    they can be chained without touching the destination file.
    """

    name: str = ""
    extensions: frozenset[str] = frozenset()

    def can_process(self, path: Path) -> bool:
        """Check if this optimizer handles the file's extension."""
        return path.suffix.lower() in self.extensions

    @property
    def signature(self) -> str:
        """Identify the optimizer and its settings for cache keys."""
        return self.name

    @abstractmethod
    def optimize(self, data: bytes, source: Path) -> bytes:
        """Optimize image bytes.

        Args:
            data: Current image bytes (output of the previous optimizer).
            source: Original source path, for extension and error reports.

        Returns:
            Optimized bytes.

        Raises:
            PipelineError: If the image cannot be processed.
        """
        ...


class MozjpegOptimizer(BaseImageOptimizer):
    """Re-encodes JPEGs as progressive at quality 75 using Pillow."""

    name = "mozjpeg"
    extensions = frozenset({".jpg", ".jpeg"})
    quality = 75

    @property
    def signature(self) -> str:
        return f"{self.name}:q{self.quality}:progressive"

    def optimize(self, data: bytes, source: Path) -> bytes:
        try:
            with Image.open(io.BytesIO(data)) as img:
                out = io.BytesIO()
                img.save(
                    out,
                    format="JPEG",
                    quality=self.quality,
                    progressive=True,
                    optimize=True,
                )
        except (OSError, ValueError) as exc:
            raise PipelineError("minIMG", f"Cannot decode image: {exc}", source, exc) from exc
        return out.getvalue()


class ExternalOptimizer(BaseImageOptimizer):
    """Runs a command-line optimizer on a temporary copy of the image.

    Subclasses define the binary, its npm package and the argument list.
    When the binary is missing the image passes through unchanged.

    Attributes:
        binary: Executable name.
        package: npm package providing the binary.
        skip_returncodes: Exit codes meaning "no better result, keep input".
    """

    binary: str = ""
    package: str | None = None
    skip_returncodes: tuple[int, ...] = ()

    def __init__(self, project_root: Path | None = None):
        self.project_root = project_root

    @property
    def signature(self) -> str:
        """Include the resolved binary so installing a tool invalidates the cache."""
        tool = find_executable(self.binary, self.project_root) or "missing"
        return f"{self.name}:{tool}:{' '.join(self.build_command('IN', 'OUT'))}"

    @abstractmethod
    def build_command(self, src: str, dst: str) -> list[str]:
        """Return the tool arguments (without the binary) for src -> dst."""
        ...

    def fallback(self, data: bytes, source: Path) -> bytes:
        """Return the bytes to use when the binary is not installed."""
        return data

    def optimize(self, data: bytes, source: Path) -> bytes:
        tool = find_executable(self.binary, self.project_root)
        if not tool:
            warn_missing(self.binary, f"skipping {self.name}", package=self.package)
            return self.fallback(data, source)

        suffix = source.suffix.lower()
        with tempfile.TemporaryDirectory(prefix="nova-img-") as tmp:
            src = Path(tmp) / f"in{suffix}"
            dst = Path(tmp) / f"out{suffix}"
            src.write_bytes(data)
            result = subprocess.run(
                [tool, *self.build_command(str(src), str(dst))],
                capture_output=True,
                text=True,
            )
            if result.returncode in self.skip_returncodes:
                return data
            if result.returncode != 0:
                raise PipelineError(
                    "minIMG",
                    f"{self.name} failed: {result.stderr.strip()}",
                    source,
                )
            if not dst.exists():
                return data
            return dst.read_bytes()


class GifsicleOptimizer(ExternalOptimizer):
    name = "gifsicle"
    binary = "gifsicle"
    extensions = frozenset({".gif"})

    def build_command(self, src: str, dst: str) -> list[str]:
        return ["--interlace", "-o", dst, src]


class JpegRecompressOptimizer(ExternalOptimizer):
    name = "jpeg-recompress"
    binary = "jpeg-recompress"
    package = "jpeg-recompress-bin"
    extensions = frozenset({".jpg", ".jpeg"})

    def build_command(self, src: str, dst: str) -> list[str]:
        return [
            "--loops", "5",
            "--min", "65",
            "--max", "70",
            "--quality", "medium",
            "--quiet",
            src,
            dst,
        ]


class SvgoOptimizer(ExternalOptimizer):
    name = "svgo"
    binary = "svgo"
    extensions = frozenset({".svg"})

    def build_command(self, src: str, dst: str) -> list[str]:
        return ["--quiet", "-i", src, "-o", dst]


class OptipngOptimizer(ExternalOptimizer):
    """Lossless PNG recompression; uses Pillow when optipng is missing."""

    name = "optipng"
    binary = "optipng"
    package = "optipng-bin"
    extensions = frozenset({".png"})

    def build_command(self, src: str, dst: str) -> list[str]:
        return ["-o3", "-quiet", "-out", dst, src]

    def fallback(self, data: bytes, source: Path) -> bytes:
        try:
            with Image.open(io.BytesIO(data)) as img:
                out = io.BytesIO()
                img.save(out, format="PNG", optimize=True)
        except (OSError, ValueError) as exc:
            raise PipelineError("minIMG", f"Cannot decode image: {exc}", source, exc) from exc
        return out.getvalue()


class PngquantOptimizer(ExternalOptimizer):
    """Lossy palette quantization at quality 65-70."""

    name = "pngquant"
    binary = "pngquant"
    package = "pngquant-bin"
    extensions = frozenset({".png"})
    # 98: result larger than input, 99: quality floor not reachable
    skip_returncodes = (98, 99)

    def build_command(self, src: str, dst: str) -> list[str]:
        return ["--quality", "65-70", "--speed", "5", "--force", "--output", dst, "--", src]


class ImageOptimizerChain:
    """Ordered list of optimizers applied to each image.

    A step's output replaces the current bytes only when it is smaller, so a
    later optimizer never undoes an earlier one's savings.
    """

    def __init__(self, optimizers: list[BaseImageOptimizer] | None = None):
        self._optimizers: list[BaseImageOptimizer] = list(optimizers or [])

    def register(self, optimizer: BaseImageOptimizer) -> None:
        self._optimizers.append(optimizer)

    @property
    def signature(self) -> str:
        return "|".join(opt.signature for opt in self._optimizers)

    def handles(self, path: Path) -> bool:
        return any(opt.can_process(path) for opt in self._optimizers)

    def optimize(self, data: bytes, source: Path) -> bytes:
        current = data
        for optimizer in self._optimizers:
            if not optimizer.can_process(source):
                continue
            result = optimizer.optimize(current, source)
            if len(result) < len(current):
                current = result
        return current


def create_default_chain(project_root: Path | None = None) -> ImageOptimizerChain:
    """Create the theme's optimizer chain, in the order the tools run.

    Args:
        project_root: Root directory used to find project-local binaries.

    Returns:
        Configured ImageOptimizerChain.
    """
    chain = ImageOptimizerChain()
    chain.register(GifsicleOptimizer(project_root))
    chain.register(MozjpegOptimizer())
    chain.register(JpegRecompressOptimizer(project_root))
    chain.register(SvgoOptimizer(project_root))
    chain.register(OptipngOptimizer(project_root))
    chain.register(PngquantOptimizer(project_root))
    return chain


class ImageCache:
    """Optimized image bytes stored on disk, keyed by source content.

    The key is the SHA-256 of the optimizer chain signature and the source
    bytes. Modification times are ignored, so restoring files from version
    control never produces a stale hit.

    Attributes:
        cache_dir: Directory holding cache entries.
        signature: Optimizer chain signature mixed into every key.
    """

    def __init__(self, cache_dir: Path, signature: str):
        self.cache_dir = cache_dir
        self.signature = signature

    def key(self, data: bytes) -> str:
        digest = hashlib.sha256(self.signature.encode("utf-8"))
        digest.update(b"\0")
        digest.update(data)
        return digest.hexdigest()

    def _entry(self, data: bytes) -> Path:
        key = self.key(data)
        return self.cache_dir / key[:2] / key

    def get(self, data: bytes) -> bytes | None:
        entry = self._entry(data)
        try:
            return entry.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, data: bytes, optimized: bytes) -> None:
        entry = self._entry(data)
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_bytes(optimized)


def optimize_images(
    project_root: Path,
    chain: ImageOptimizerChain | None = None,
    cache: ImageCache | None = None,
) -> list[Path]:
    """Optimize every theme image into the distribution tree.

    Args:
        project_root: Root directory of the theme.
        chain: Optional custom optimizer chain.
        cache: Optional custom cache (defaults to .cache/images).

    Returns:
        List of destination files that were written during this run.

    Raises:
        PipelineError: If an image cannot be read or an optimizer fails.
    """
    chain = chain or create_default_chain(project_root)
    cache = cache or ImageCache(project_root / IMAGE_CACHE_DIR, chain.signature)
    base = project_root / glob_base(IMG_SOURCES[0])
    dest_dir = project_root / DIST_IMG_DIR

    written: list[Path] = []
    count = 0
    total_before = 0
    total_saved = 0

    for source in expand(project_root, IMG_SOURCES):
        rel = source.relative_to(base)
        dest = dest_dir / rel
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise PipelineError("minIMG", str(exc), source, exc) from exc

        if not chain.handles(source):
            if write_if_changed(dest, data):
                written.append(dest)
            continue

        optimized = cache.get(data)
        cached = optimized is not None
        if optimized is None:
            optimized = chain.optimize(data, source)
            cache.put(data, optimized)

        if write_if_changed(dest, optimized):
            written.append(dest)

        saved = len(data) - len(optimized)
        count += 1
        total_before += len(data)
        total_saved += max(saved, 0)
        if saved > 0:
            detail = f"saved {format_size(saved)} - {saved / len(data) * 100:.1f}%"
        else:
            detail = "already optimized"
        if cached:
            detail += ", cached"
        print(f"[minIMG] ✔ {rel.as_posix()} ({detail})")

    percent = (total_saved / total_before * 100) if total_before else 0.0
    print(
        f"[minIMG] Minified {count} image{'s' if count != 1 else ''} "
        f"(saved {format_size(total_saved)} - {percent:.1f}%)"
    )
    return written
