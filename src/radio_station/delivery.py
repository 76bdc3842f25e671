"""Audio delivery to a local output device or a live broadcast.

Local mode plays each clip with one ffmpeg process and waits for it.

Live mode keeps two long-lived ffmpeg processes running for the whole
run:

    decoder (per clip) --pcm--> Stage A relay --fifo--> Stage B encoder --> RTMP

Stage B mixes the FIFO with a silent source so the broadcast never gaps
between clips. Each clip's decoder output is attached to Stage A's stdin
without closing it, so the next clip can follow.
"""

import logging
import os
import random
import stat
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Optional

from .config import config
from .errors import DeliveryError, PipelineFatalError
from .processes import ProcessRegistry, stop_process

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg"}


class DeliveryPipeline(ABC):
    """Base class: a context manager around the output's lifetime."""

    mode = "none"

    def __init__(self, registry: Optional[ProcessRegistry] = None):
        self.registry = registry or ProcessRegistry(config.streaming.shutdown_timeout)
        self.ffmpeg = config.streaming.ffmpeg_path
        self.sample_rate = config.streaming.sample_rate
        self.channels = config.streaming.channels

    def start(self) -> None:
        """Bring up any long-lived processes."""

    @abstractmethod
    def deliver(self, path: Path) -> None:
        """Play one clip; returns when the clip has been handed off.

        Raises:
            DeliveryError: If the clip could not be delivered
            PipelineFatalError: If the output itself is gone
        """

    def stop(self) -> None:
        """Tear down and sweep every tracked process. Idempotent."""
        self.registry.terminate_all()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _pcm_args(self) -> list[str]:
        return ["-f", "s16le", "-ar", str(self.sample_rate), "-ac", str(self.channels)]


class LocalDelivery(DeliveryPipeline):
    """Decode and play each clip on a local output device."""

    mode = "local"

    def __init__(self, registry: Optional[ProcessRegistry] = None):
        super().__init__(registry)
        self.output_format = config.streaming.local_output_format
        self.output_device = config.streaming.local_output_device

    def build_command(self, path: Path) -> list[str]:
        return [
            self.ffmpeg, "-nostdin", "-hide_banner", "-loglevel", "warning",
            "-i", str(path), "-vn",
            "-c:a", "pcm_s16le", "-ar", str(self.sample_rate), "-ac", str(self.channels),
            "-f", self.output_format, self.output_device,
        ]

    def deliver(self, path: Path) -> None:
        try:
            proc = self.registry.spawn(self.build_command(path), stdin=subprocess.DEVNULL)
        except OSError as e:
            raise DeliveryError(f"Failed to start player for {path}: {e}", path=path) from e

        returncode = proc.wait()
        if returncode != 0:
            raise DeliveryError(
                f"Player exited with code {returncode} for {path}",
                path=path,
                returncode=returncode,
            )


class PcmRelay:
    """Stage A: accepts raw PCM on stdin and writes it to the FIFO.

    Sources are attached with ``attach``; Stage A's stdin stays open
    after a source ends so the next source can follow. Only ``close``
    ends it.
    """

    def __init__(self, proc: subprocess.Popen):
        self.proc = proc
        self.stdin: Optional[IO[bytes]] = proc.stdin

    @property
    def alive(self) -> bool:
        return self.proc.poll() is None and self.stdin is not None and not self.stdin.closed

    def attach(self, source: IO[bytes]) -> int:
        """Copy ``source`` into Stage A until EOF without closing stdin.

        Returns:
            Number of bytes relayed

        Raises:
            PipelineFatalError: If Stage A's stdin is broken
        """
        if self.stdin is None:
            raise PipelineFatalError("Audio relay input is closed")

        relayed = 0
        while True:
            chunk = source.read(CHUNK_SIZE)
            if not chunk:
                break
            try:
                self.stdin.write(chunk)
            except (BrokenPipeError, ValueError, OSError) as e:
                raise PipelineFatalError(f"Audio relay input broken: {e}") from e
            relayed += len(chunk)

        try:
            self.stdin.flush()
        except (BrokenPipeError, ValueError, OSError) as e:
            raise PipelineFatalError(f"Audio relay input broken: {e}") from e
        return relayed

    def close(self) -> None:
        """End Stage A's input so it flushes and exits."""
        if self.stdin is not None and not self.stdin.closed:
            try:
                self.stdin.close()
            except (BrokenPipeError, OSError) as e:
                logger.warning(f"Error closing audio relay input: {e}")
        self.stdin = None


class LiveBroadcastDelivery(DeliveryPipeline):
    """Relay every clip into a continuous RTMP broadcast."""

    mode = "live"

    def __init__(
        self,
        registry: Optional[ProcessRegistry] = None,
        fifo_path: Optional[Path] = None,
        images_path: Optional[Path] = None,
    ):
        super().__init__(registry)
        self.fifo_path = fifo_path or config.paths.fifo_path
        self.images_path = images_path or config.paths.images_path
        self.shutdown_timeout = config.streaming.shutdown_timeout
        self.relay: Optional[PcmRelay] = None
        self.encoder: Optional[subprocess.Popen] = None

    def pick_cover_image(self) -> Path:
        """Random cover image from the images directory.

        Raises:
            FileNotFoundError: If no images are available
        """
        try:
            images = sorted(
                p for p in self.images_path.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS
            )
        except FileNotFoundError:
            images = []
        if not images:
            raise FileNotFoundError(f"No images found in {self.images_path}")
        return random.choice(images)

    def ensure_fifo(self) -> None:
        if self.fifo_path.exists():
            if not stat.S_ISFIFO(self.fifo_path.stat().st_mode):
                raise FileExistsError(f"{self.fifo_path} exists and is not a FIFO")
            return
        self.fifo_path.parent.mkdir(parents=True, exist_ok=True)
        os.mkfifo(self.fifo_path)

    def relay_command(self) -> list[str]:
        return [
            self.ffmpeg, "-nostdin", "-hide_banner", "-loglevel", "warning", "-y",
            *self._pcm_args(), "-i", "pipe:0",
            "-c:a", "pcm_s16le", *self._pcm_args(), str(self.fifo_path),
        ]

    def encoder_command(self, cover: Path) -> list[str]:
        streaming = config.streaming
        layout = "stereo" if self.channels == 2 else "mono"
        return [
            self.ffmpeg, "-nostdin", "-hide_banner", "-loglevel", "warning",
            "-re", "-f", "lavfi", "-i", f"color=c=black:s={streaming.video_size}:r=5,format=yuv420p",
            "-loop", "1", "-framerate", "5", "-i", str(cover),
            "-f", "lavfi", "-i", f"anullsrc=channel_layout={layout}:sample_rate={self.sample_rate}",
            "-re", *self._pcm_args(), "-i", str(self.fifo_path),
            "-filter_complex",
            "[0:v][1:v]overlay=x=(W-w)/2:y=(H-h)/2,format=yuv420p[v];"
            "[2:a][3:a]amix=inputs=2:duration=first:dropout_transition=2[aout]",
            "-map", "[v]", "-map", "[aout]",
            "-c:v", "libx264", "-preset", "veryfast", "-tune", "zerolatency", "-g", "60",
            "-pix_fmt", "yuv420p",
            "-b:v", streaming.video_bitrate, "-maxrate", streaming.video_bitrate,
            "-bufsize", "5000k",
            "-c:a", "aac", "-b:a", streaming.audio_bitrate,
            "-ar", str(self.sample_rate), "-ac", str(self.channels),
            "-r", "5", "-fps_mode", "cfr",
            "-max_muxing_queue_size", "9999",
            "-f", "flv", streaming.broadcast_url,
        ]

    def decoder_command(self, path: Path) -> list[str]:
        return [
            self.ffmpeg, "-nostdin", "-re", "-hide_banner", "-loglevel", "warning",
            "-i", str(path), *self._pcm_args(), "pipe:1",
        ]

    def start(self) -> None:
        """Start Stage A and Stage B.

        Raises:
            PipelineFatalError: If either stage cannot be started
        """
        if self.relay is not None:
            return

        try:
            cover = self.pick_cover_image()
            self.ensure_fifo()
            logger.info(f"Starting live broadcast with cover {cover}")
            relay_proc = self.registry.spawn(self.relay_command(), stdin=subprocess.PIPE)
            self.encoder = self.registry.spawn(
                self.encoder_command(cover), stdin=subprocess.DEVNULL
            )
        except (OSError, ValueError) as e:
            self.stop()
            raise PipelineFatalError(f"Failed to start live broadcast: {e}") from e

        self.relay = PcmRelay(relay_proc)

    def check_stages(self) -> None:
        """Raise PipelineFatalError if Stage A or Stage B has died."""
        if self.relay is not None and self.relay.proc.poll() is not None:
            raise PipelineFatalError(
                f"Audio relay exited with code {self.relay.proc.returncode}"
            )
        if self.encoder is not None and self.encoder.poll() is not None:
            raise PipelineFatalError(
                f"Broadcast encoder exited with code {self.encoder.returncode}"
            )

    def deliver(self, path: Path) -> None:
        if self.relay is None:
            logger.warning(f"Live relay not running; skipping {path}")
            return

        self.check_stages()

        try:
            decoder = self.registry.spawn(
                self.decoder_command(path), stdin=subprocess.DEVNULL, stdout=subprocess.PIPE
            )
        except OSError as e:
            raise DeliveryError(f"Failed to start decoder for {path}: {e}", path=path) from e

        try:
            relayed = self.relay.attach(decoder.stdout)
        except PipelineFatalError:
            stop_process(decoder, self.shutdown_timeout, name="decoder")
            raise
        finally:
            decoder.stdout.close()

        returncode = decoder.wait()
        if returncode != 0:
            raise DeliveryError(
                f"Decoder exited with code {returncode} for {path}",
                path=path,
                returncode=returncode,
            )
        logger.debug(f"Relayed {relayed} bytes from {path}")

    def stop(self) -> None:
        if self.relay is not None:
            logger.info("Stopping live broadcast")
            self.relay.close()
            try:
                self.relay.proc.wait(timeout=self.shutdown_timeout)
            except subprocess.TimeoutExpired:
                stop_process(self.relay.proc, self.shutdown_timeout, name="audio relay")
            self.relay = None
        if self.encoder is not None:
            stop_process(self.encoder, self.shutdown_timeout, name="broadcast encoder")
            self.encoder = None
        super().stop()


def create_delivery(mode: Optional[str] = None, registry: Optional[ProcessRegistry] = None) -> DeliveryPipeline:
    """Build the delivery pipeline for ``mode`` (default: config.streaming.stream_mode)."""
    mode = mode or config.streaming.stream_mode
    if mode == "live":
        return LiveBroadcastDelivery(registry)
    if mode == "local":
        return LocalDelivery(registry)
    raise ValueError(f"Unknown stream mode: {mode}")
