import os
import glob
import logging
from typing import List

import ffmpeg
import yt_dlp

logger = logging.getLogger(__name__)


class MediaProcessingError(RuntimeError):
    """A video could not be downloaded or decoded."""


def _ffmpeg_message(e: ffmpeg.Error) -> str:
    return e.stderr.decode(errors="replace") if e.stderr else str(e)


def download_video(url: str, output_path: str) -> str:
    """
    Download a hosted video with yt-dlp.
    Returns the path of the downloaded file.
    """
    # Lowest quality that still carries a usable picture and the audio track
    ydl_opts = {
        'format': 'worstvideo[ext=mp4]+bestaudio[ext=m4a]/worst[ext=mp4]/worst',
        'outtmpl': output_path,
        'quiet': True,
        'no_warnings': True,
        'overwrites': True,
    }

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            ydl.download([url])
    except yt_dlp.utils.DownloadError as e:
        logger.error(f"Error downloading video {url}: {e}")
        raise MediaProcessingError(f"Could not download video: {e}") from e

    if os.path.exists(output_path):
        return output_path

    # yt-dlp may still append its own extension to the template
    base_name = os.path.splitext(output_path)[0]
    matches = sorted(glob.glob(f"{base_name}*"))
    if matches:
        return matches[0]
    raise MediaProcessingError(f"Video not found after download from {url}")


def extract_frames(video_path: str, output_dir: str, interval: int = 5) -> List[str]:
    """
    Extract one frame every `interval` seconds.
    Returns the frame paths in playback order.
    """
    os.makedirs(output_dir, exist_ok=True)
    output_pattern = os.path.join(output_dir, "frame_%04d.jpg")

    try:
        # ffmpeg -i video.mp4 -vf fps=1/5 frame_%04d.jpg
        (
            ffmpeg
            .input(video_path)
            .filter('fps', fps=1.0 / interval)
            .output(output_pattern)
            .overwrite_output()
            .run(quiet=True)
        )
    except ffmpeg.Error as e:
        logger.error(f"Error extracting frames: {_ffmpeg_message(e)}")
        raise MediaProcessingError("Could not extract frames from video") from e

    return sorted(glob.glob(os.path.join(output_dir, "frame_*.jpg")))


def extract_audio(video_path: str, output_path: str) -> str:
    """Extract the audio track to a low bitrate MP3 (Whisper upload limit is 25 MB)."""
    try:
        (
            ffmpeg
            .input(video_path)
            .output(output_path, format='mp3', audio_bitrate='32k')
            .overwrite_output()
            .run(quiet=True)
        )
    except ffmpeg.Error as e:
        logger.error(f"Error extracting audio: {_ffmpeg_message(e)}")
        raise MediaProcessingError("Could not extract audio from video") from e
    return output_path
