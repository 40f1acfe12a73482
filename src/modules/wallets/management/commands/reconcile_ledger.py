from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from modules.wallets.repositories import WalletDjangoRepository
from modules.wallets.services import ReconciliationService


class Command(BaseCommand):
    help = "Recompute wallet balances from the ledger and report drift."

    def add_arguments(self, parser):
        parser.add_argument(
            "--tolerance",
            default="0.00",
            help="Absolute drift ignored per wallet (default 0.00).",
        )

    def handle(self, *args, **options):
        try:
            tolerance = Decimal(options["tolerance"])
        except InvalidOperation as exc:
            raise CommandError(f"Invalid tolerance: {options['tolerance']!r}") from exc

        report = ReconciliationService(WalletDjangoRepository()).find_drift(tolerance)
        self.stdout.write(json.dumps(report.as_dict(), indent=2))

        if not report.ok:
            raise CommandError(
                f"Ledger drift detected in {report.drift_count} wallet(s).",
                returncode=2,
            )
        self.stdout.write(
            self.style.SUCCESS(f"Ledger consistent: wallets={report.wallet_count}")
        )
