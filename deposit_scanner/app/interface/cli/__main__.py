import asyncio
import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from deposit_scanner.app.application.services.block_bounds import parse_block_selector
from deposit_scanner.app.config import settings
from deposit_scanner.app.domain.errors import DepositScannerError
from deposit_scanner.app.interface.tasks import TASKS


load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)

app = typer.Typer()
scanner_app = typer.Typer(help="cli for rebuilding deposit data from chain.")
app.add_typer(scanner_app, name="scanner")


@scanner_app.command("run")
def run(
    from_block: Optional[str] = typer.Option(None, "--from-block", help="First block (inclusive), or 'earliest'."),
    to_block: Optional[str] = typer.Option(None, "--to-block", help="Last block (exclusive), or 'latest' (chain head, itself not scanned)."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output JSON file."),
    contract: Optional[str] = typer.Option(None, "--contract", help="Deposit contract address."),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="JSON-RPC endpoint."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max blocks fetched at once."),
    skip_invalid: bool = typer.Option(False, "--skip-invalid", help="Skip undecodable deposits instead of aborting."),
    no_progress: bool = typer.Option(False, "--no-progress", help="Hide the progress bar."),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Prompt for missing values."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    if interactive:
        if from_block is None:
            from_block = inquirer.text(
                message="From block (inclusive):",
                default=str(settings.start_block),
            ).execute()
        if to_block is None:
            to_block = inquirer.text(
                message="To block (exclusive, or 'latest'):",
                default=str(settings.end_block),
            ).execute()
        if output is None:
            output = inquirer.text(
                message="Output file:",
                default=settings.output_path,
            ).execute()

    task = TASKS["scan_deposits_task"]

    try:
        report = asyncio.run(
            task(
                from_block=parse_block_selector(from_block if from_block is not None else settings.start_block),
                to_block=parse_block_selector(to_block if to_block is not None else settings.end_block),
                output_path=output,
                contract_address=contract,
                rpc_url=rpc_url,
                max_concurrency=concurrency,
                strict=False if skip_invalid else None,
                show_progress=False if no_progress else None,
            )
        )
    except (DepositScannerError, ValueError) as exc:
        logger.error("Scan aborted: %s", exc)
        raise typer.Exit(code=1)

    typer.echo(f"Scan done!\n Deposit data written OK\n Found {len(report.deposits)} deposits")
    if report.skipped:
        typer.echo(f" Skipped {len(report.skipped)} undecodable deposits")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
