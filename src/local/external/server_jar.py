import sys
import zipfile
import logging
import requests
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from src.local.config import effective_settings as config

if TYPE_CHECKING:
    from src.local.options import Options

log = logging.getLogger(__name__)


class ServerJarManager:
    """Makes sure a usable server jar is in place before the server is launched."""

    def __init__(self, options: "Options", target_dir: Optional[Path] = None, url: Optional[str] = None):
        self.options = options
        self.target_dir = Path(target_dir) if target_dir else config.BIN_DIR
        self.url = url or config.DOWNLOAD_URL
        self.jar_path = self.target_dir / config.SERVER_JAR

    def uses_alternate_jar(self) -> bool:
        return self.options.contains("alternateJarFile")

    def verify_jar(self, path: Optional[Path] = None) -> bool:
        """
        A jar counts as valid when it opens as a zip archive and holds more
        than MIN_JAR_ENTRIES entries. An alternate jar is trusted as it is.
        """
        if path is None and self.uses_alternate_jar():
            return True

        path = path or self.jar_path
        try:
            with zipfile.ZipFile(path) as jar:
                return len(jar.infolist()) > config.MIN_JAR_ENTRIES
        except (zipfile.BadZipFile, OSError):
            return False

    def _download_file(self, url: str, dest_path: Path) -> bool:
        """Downloads a file with a simple progress bar."""
        log.info(f"Downloading {config.SERVER_JAR} from {url}. Please wait!")
        try:
            headers = {"User-Agent": "ServerWrap/1.0"}
            with requests.get(url, stream=True, timeout=config.DOWNLOAD_TIMEOUT, headers=headers) as r:
                r.raise_for_status()
                total_size = int(r.headers.get("content-length", 0))
                with open(dest_path, "wb") as f:
                    downloaded = 0
                    for chunk in r.iter_content(chunk_size=config.DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        downloaded += len(chunk)
                        done = int(50 * downloaded / total_size) if total_size else 0
                        sys.stdout.write(f"\r[{'=' * done}{' ' * (50-done)}] {downloaded/1024/1024:.2f} MB")
                        sys.stdout.flush()
            sys.stdout.write("\n")
            log.info(f"Successfully downloaded to '{dest_path}'.")
            return True
        except (requests.RequestException, OSError) as e:
            log.error(f"Unable to download {config.SERVER_JAR}: {e}")
            dest_path.unlink(missing_ok=True)
            return False

    def prepare_server_jar(self) -> bool:
        """
        BLOCKING: Ensures the server jar exists and is valid, downloading it if not.

        :return: True if a valid jar is in place.
        """
        if self.verify_jar():
            return True

        self.target_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.jar_path.with_suffix(".part")
        if not self._download_file(self.url, temp_path):
            return False

        if not self.verify_jar(temp_path):
            log.error(f"{config.SERVER_JAR} is corrupt!")
            temp_path.unlink(missing_ok=True)
            return False

        temp_path.replace(self.jar_path)
        return True
