"""
Range Bar Generator - Batch orchestrator and command line entry point.

Main Flow:
1. Load configuration (YAML file + command line overrides)
2. Open the status log
3. Discover ``{root}*.zip`` archives in the input directory
4. Process archives in parallel, one sequential pipeline per archive:
   - validate ticks
   - split sessions at the daily cutover
   - build range bars
   - label bars with their forward value
   - emit records
5. Exit with the worst status code seen across all archives

Critical Design:
- Per-row and per-archive failures are logged and never stop the run
- Missing input directory or zero archives stop the run immediately
- The only state shared between workers is the status log/register
"""

import argparse
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .core.config import RangeBarConfig, load_config
from .core.constants import OutputMode, ReturnCode, VERSION
from .core.contract import ContractId
from .core.exceptions import InputDirectoryError, InvalidConfigError, InvalidContractNameError
from .core.types import ArchiveResult
from .data.archive_processor import ArchiveProcessor
from .monitoring.logger import get_logger, setup_logger
from .monitoring.status import StatusLog, StatusRegister


DEFAULT_CONFIG_FILE = "config/config.yaml"


class RangeBarSystem:
    """
    Batch range bar generator.

    Coordinates archive discovery, the worker pool and the status log.
    """

    def __init__(self, config: RangeBarConfig, status: Optional[StatusLog] = None):
        """
        Initialize system.

        Args:
            config: Validated run configuration
            status: Status log to use; created in setup() if None
        """
        self.config = config
        self.status = status
        self.logger = get_logger(__name__)
        self.results: List[ArchiveResult] = []

    def setup(self) -> None:
        """
        Create the status log.

        Raises:
            OSError: if the log directory or file cannot be created
        """
        if self.status is None:
            self.status = StatusLog.create(self.config.log_dir, register=StatusRegister())

    def discover_archives(self) -> List[Path]:
        """
        List input archives for the configured futures root.

        Returns:
            Archive paths sorted by name

        Raises:
            InputDirectoryError: if the directory is missing or holds no archives
        """
        input_dir = self.config.input_dir
        if not input_dir.is_dir():
            raise InputDirectoryError(
                "Cannot open input directory",
                code=ReturnCode.NO_INPUT_DIRECTORY,
                path=input_dir
            )

        root = self.config.futures_root
        archives = sorted(
            p for p in input_dir.iterdir()
            if p.is_file() and p.suffix.lower() == ".zip" and p.name.upper().startswith(root)
        )
        if not archives:
            raise InputDirectoryError(
                f"No {root}*.zip archives found",
                code=ReturnCode.NO_ARCHIVES_FOUND,
                path=input_dir
            )
        return archives

    def select_archives(self, archives: List[Path]) -> List[Path]:
        """
        Keep one archive per contract.

        Archives naming the same contract (e.g. ESZ20.zip and ESZ20-CME.zip)
        would write the same output file. The archive named exactly after
        the contract is kept, otherwise the first by name; every other one is
        logged as DUPLICATE_CONTRACT and not processed. Names that do not
        parse are kept so the processor reports them.

        Returns:
            Archive paths sorted by name
        """
        selected: List[Path] = []
        groups: Dict[str, List[Tuple[Path, ContractId]]] = {}
        for archive in archives:
            try:
                contract = ContractId.parse(archive.stem, self.config.futures_root)
            except InvalidContractNameError:
                selected.append(archive)
                continue
            groups.setdefault(str(contract), []).append((archive, contract))

        for name, group in groups.items():
            group.sort(key=lambda item: (item[0].stem.upper() != name, item[0].name))
            kept = group[0][0]
            selected.append(kept)
            for archive, contract in group[1:]:
                self.status.log(
                    ReturnCode.DUPLICATE_CONTRACT,
                    "Archive names a contract already being processed, archive skipped",
                    archive=archive.name,
                    contract=name,
                    kept=kept.name
                )
                self.results.append(
                    ArchiveResult(archive=archive, contract=contract, code=ReturnCode.DUPLICATE_CONTRACT)
                )

        return sorted(selected)

    def process_archive(self, archive: Path) -> ArchiveResult:
        """Run the pipeline for one archive on a fresh processor."""
        return ArchiveProcessor(self.config, self.status).process(archive)

    def run(self) -> ReturnCode:
        """
        Process every discovered archive.

        Returns:
            Worst status code of the run
        """
        self.setup()
        started = time.perf_counter()

        try:
            archives = self.discover_archives()
        except InputDirectoryError as e:
            return self.status.log(e.code, str(e))
        archives = self.select_archives(archives)

        workers = min(self.config.workers, len(archives))
        self.logger.info(
            "Starting range bar generation",
            root=self.config.futures_root,
            archives=len(archives),
            workers=workers,
            mode=self.config.output_mode.value,
            update_only=self.config.update_only
        )

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="archive") as pool:
            futures = {pool.submit(self.process_archive, a): a for a in archives}
            for future in as_completed(futures):
                archive = futures[future]
                try:
                    self.results.append(future.result())
                except Exception as e:
                    self.logger.error(f"Unhandled error in {archive.name}", exc_info=True)
                    self.status.log(ReturnCode.ARCHIVE_READ_ERROR, f"Unhandled error: {e}", archive=archive.name)
                    self.results.append(ArchiveResult(archive=archive, code=ReturnCode.ARCHIVE_READ_ERROR))

        self.results.sort(key=lambda r: r.archive.name)
        self._log_summary(time.perf_counter() - started)
        return self.status.worst

    def shutdown(self) -> None:
        """Close the status log."""
        if self.status is not None:
            self.status.close()

    def _log_summary(self, elapsed: float) -> None:
        processed = [r for r in self.results if not r.skipped]
        total_value = sum((r.total_value for r in processed if r.succeeded), Decimal("0"))

        self.logger.info(
            "Run complete",
            archives=len(self.results),
            processed=len(processed),
            skipped=sum(1 for r in self.results if r.skipped),
            failed=sum(1 for r in self.results if not r.succeeded),
            total_value=total_value,
            elapsed=f"{elapsed:.2f}s",
            worst=self.status.worst.name
        )
        for code_name, count in self.status.summary().items():
            self.logger.info("Status count", code=code_name, entries=count)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rangebars",
        description="Create labeled range bar files from zipped tick files"
    )
    parser.add_argument(
        '-v', '--version',
        action='version',
        version=f"rangebars {VERSION}"
    )
    parser.add_argument(
        '-c', '--config',
        default=None,
        help=f'Configuration file path (default: {DEFAULT_CONFIG_FILE} if present)'
    )
    parser.add_argument(
        '-s', '--symbol',
        default=None,
        help='Futures contract root symbol, e.g. ES for the CME S&P 500 e-mini'
    )

    update = parser.add_mutually_exclusive_group()
    update.add_argument(
        '-u', '--update',
        dest='update_only',
        action='store_const',
        const=True,
        default=None,
        help='Only process archives without a corresponding output file'
    )
    update.add_argument(
        '-r', '--replace',
        dest='update_only',
        action='store_const',
        const=False,
        help='Reprocess every archive, replacing existing output'
    )

    parser.add_argument(
        '--flat',
        action='store_true',
        help='Write flat text files (no header, contract column, summed volume) instead of zipped CSV'
    )
    parser.add_argument('-i', '--input-dir', type=Path, default=None, help='Directory of input archives')
    parser.add_argument('-o', '--output-dir', type=Path, default=None, help='Directory for output files')
    parser.add_argument('-j', '--workers', type=int, default=None, help='Number of archives processed in parallel')
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level'
    )
    return parser


def resolve_config(args: argparse.Namespace) -> RangeBarConfig:
    """
    Load the config file and apply command line overrides.

    Raises:
        InvalidConfigError: on invalid settings
    """
    config_file = args.config
    if config_file is None and Path(DEFAULT_CONFIG_FILE).exists():
        config_file = DEFAULT_CONFIG_FILE

    config = load_config(config_file)
    return config.with_overrides(
        futures_root=args.symbol,
        update_only=args.update_only,
        output_mode=OutputMode.FLAT if args.flat else None,
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        max_workers=args.workers,
        log_level=args.log_level,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit status: the worst status code of the run
    """
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
    except InvalidConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return int(ReturnCode.INVALID_ARGUMENT)

    system = RangeBarSystem(config)
    try:
        setup_logger(log_file=config.log_dir / "rangebars.log", level=config.log_level)
        system.setup()
    except OSError as e:
        print(f"Unable to create log files in {config.log_dir}: {e}", file=sys.stderr)
        return int(ReturnCode.LOG_CREATION_FAILED)

    try:
        return int(system.run())
    finally:
        system.shutdown()


if __name__ == "__main__":
    sys.exit(main())
