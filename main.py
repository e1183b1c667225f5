# main.py
import argparse
import json
import logging
import sys
from typing import Optional

import requests
from dotenv import find_dotenv, load_dotenv

import config
from captcha_solver import CaptchaChallengeSolver, extract_challenge
from datastructures import DownloadResult, DownloadTarget, ResolvedLinks
from downloader import StreamingDownloader
from errors import DownloaderError
from fetcher import PageFetcher
from link_resolver import RedirectChainResolver
from telegram_source import TelegramSource
from utils import split_version
from verification import VerificationExchanger

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    logging.basicConfig(level=logging.DEBUG if verbose else config.LOG_LEVEL,
                        format=config.LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    # Quieten noisy libraries
    for name in ("urllib3", "charset_normalizer", "telethon"):
        logging.getLogger(name).setLevel(logging.WARNING)


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": config.USER_AGENT})
    return session


def resolve_links(fetcher: PageFetcher, target: DownloadTarget, source: str) -> ResolvedLinks:
    resolver = RedirectChainResolver(fetcher)
    if source == "telegram":
        shortener_url = TelegramSource(config.TelegramConfig.from_env()).find_start_url(target)
        return resolver.resolve_from_shortener(shortener_url, target)
    return resolver.resolve(target)


def check_version(fetcher: PageFetcher, links: ResolvedLinks, json_output: bool):
    challenge = extract_challenge(fetcher, links.authorizing_url)
    version, suffix = split_version(challenge.file_id)
    if json_output:
        print(json.dumps({"version": version, "suffix": suffix, "uploaded": challenge.upload_date}))
    else:
        print(f"Version: {version}")


def download_artifact(fetcher: PageFetcher, solver_config: config.SolverConfig, links: ResolvedLinks,
                      output_dir: str) -> DownloadResult:
    """Captcha gate, cookie exchange, then the authorized download."""
    solver = CaptchaChallengeSolver.from_config(fetcher, solver_config)
    challenge = solver.extract_challenge(links.authorizing_url)
    token = solver.solve_challenge(challenge)
    cookie = VerificationExchanger(fetcher.session).verify_challenge(challenge, token)
    return StreamingDownloader(fetcher.session).download(links.direct_url, links.authorizing_url, cookie, output_dir)


def handle_action(target: DownloadTarget, check: bool, download: bool, json_output: bool = False,
                  output_dir: str = config.DOWNLOAD_FOLDER, source: str = "site") -> Optional[DownloadResult]:
    # Fail on a missing solver key before any network traffic
    solver_config = config.SolverConfig.from_env() if download else None

    with new_session() as session:
        fetcher = PageFetcher(session)
        links = resolve_links(fetcher, target, source)
        if check:
            check_version(fetcher, links, json_output)
        if download:
            return download_artifact(fetcher, solver_config, links, output_dir)
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tiktokmodcloud",
        description="Checks or downloads the latest TikTok mod/plugin APK through its mirror and captcha gate.",
    )
    parser.add_argument('--json', action='store_true', help="Output check results as JSON.")
    parser.add_argument('--output-dir', default=config.DOWNLOAD_FOLDER, metavar='DIR',
                        help=f"Folder to save downloaded files (default: {config.DOWNLOAD_FOLDER})")
    parser.add_argument('--source', choices=("site", "telegram"), default="site",
                        help="Where to find the start URL (default: site).")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest='command', required=True, metavar='{mod,plugin,both}')
    for name, help_text in (("mod", "Select the mod"), ("plugin", "Select the plugin"),
                            ("both", "Both mod and plugin")):
        sub = subparsers.add_parser(name, help=help_text)
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument('-c', '--check', action='store_true', help="Check for the latest version")
        group.add_argument('-d', '--download', action='store_true', help="Download the latest version")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(find_dotenv(usecwd=True))
    setup_logging(args.verbose)

    if args.command == "both":
        targets = [DownloadTarget.MOD, DownloadTarget.PLUGIN]
    else:
        targets = [DownloadTarget(args.command)]

    for target in targets:
        logger.info(f"--- {target.value} ---")
        try:
            result = handle_action(target, args.check, args.download, args.json, args.output_dir, args.source)
        except DownloaderError as e:
            logger.error(f"{target.value}: {e}")
            return 1
        if result:
            logger.info(f"Saved {result.bytes_written} bytes to {result.file_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
