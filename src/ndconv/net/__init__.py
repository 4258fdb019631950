from ndconv.net.downloader import Downloader, DownloadResult
from ndconv.net.urlguard import is_forbidden_ip, validate_download_url

__all__ = [
    "DownloadResult",
    "Downloader",
    "is_forbidden_ip",
    "validate_download_url",
]
