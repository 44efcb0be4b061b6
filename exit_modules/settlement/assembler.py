"""
Settlement Input Assembly (``exit_modules.settlement.assembler``).

Responsibility
--------------
Gathers everything ``compute_settlement`` needs from the collaborators:
the employee profile (mandatory), the final-month payslip, the employee's
assets, the asset recoveries and both dues ledgers (optional; empty is
fine).

Concurrency
-----------
With ``workers == 1`` every read runs inline, in a fixed order, on the
caller's thread.  With ``workers > 1`` the optional reads are submitted to
a ``ThreadPoolExecutor`` and joined before the engine runs; collaborators
must then be safe to call from several threads (the SQL-backed stores
share one session and are not).

Failure modes
-------------
* ``ProfileNotFoundError`` -- profile store has no record for the user.
* ``DependencyError`` -- a collaborator raised something other than an
  ``ExitKernelError``.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from exit_engines.settlement import (
    AssetRecoveryLine,
    CompensationFacts,
    DueLine,
    PayslipFacts,
    SettlementAdjustments,
    SettlementInputs,
)
from exit_kernel.exceptions import DependencyError, ExitKernelError, ProfileNotFoundError
from exit_kernel.logging_config import get_logger
from exit_modules.exit_request.models import ExitRequest
from exit_modules.payroll_inputs.protocols import AssetReader, DuesReader, PayrollHistory, ProfileStore

logger = get_logger("modules.settlement.assembler")


def _due_line(due: Any) -> DueLine:
    if isinstance(due, DueLine):
        return due
    return DueLine(due_type=due.due_type, amount=due.amount, description=getattr(due, "description", None))


def _status_value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


class SettlementInputAssembler:
    """Builds ``SettlementInputs`` for one exit request."""

    def __init__(
        self,
        profiles: ProfileStore,
        payroll: PayrollHistory,
        dues: DuesReader,
        assets: AssetReader,
        *,
        workers: int = 1,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._profiles = profiles
        self._payroll = payroll
        self._dues = dues
        self._assets = assets
        self._workers = workers

    def _call(self, source: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except ExitKernelError:
            raise
        except Exception as exc:
            logger.error(
                "settlement_dependency_failed",
                extra={"source": source, "error_type": type(exc).__name__},
            )
            raise DependencyError(source, str(exc)) from exc

    def _fetch_optional(self, request: ExitRequest) -> dict[str, Any]:
        lwd = request.last_working_day
        reads: dict[str, Callable[[], Any]] = {
            "payslips": lambda: self._payroll.get_payslips(request.user_id, lwd.year, lwd.month),
            "employee_assets": lambda: self._assets.get_employee_assets(request.user_id),
            "asset_recovery": lambda: self._assets.get_asset_recovery(request.id),
            "payable_dues": lambda: self._dues.get_payable_dues(request.id),
            "recoverable_dues": lambda: self._dues.get_recoverable_dues(request.id),
        }

        if self._workers == 1:
            return {source: self._call(source, fn) for source, fn in reads.items()}

        results: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            future_to_source = {
                executor.submit(self._call, source, fn): source
                for source, fn in reads.items()
            }
            for future in as_completed(future_to_source):
                results[future_to_source[future]] = future.result()
        return results

    def assemble(self, request: ExitRequest, adjustments: SettlementAdjustments) -> SettlementInputs:
        profile = self._call("employee_profile", lambda: self._profiles.get_profile_by_id(request.user_id))
        if profile is None:
            raise ProfileNotFoundError(request.user_id)

        fetched = self._fetch_optional(request)

        payslips = list(fetched["payslips"] or ())
        payslip = None
        if payslips:
            latest = payslips[0]
            payslip = PayslipFacts(
                year=latest.year,
                month=latest.month,
                net_pay=latest.net_pay,
                deductions=dict(latest.deductions),
            )

        assets_by_id = {a.id: a for a in fetched["employee_assets"] or ()}
        recoveries = []
        for recovery in fetched["asset_recovery"] or ():
            asset = assets_by_id.get(recovery.employee_asset_id)
            recoveries.append(AssetRecoveryLine(
                employee_asset_id=recovery.employee_asset_id,
                recovery_status=_status_value(recovery.recovery_status),
                cost_recovery=recovery.cost_recovery,
                asset_name=asset.asset_name if asset else None,
                asset_found=asset is not None,
            ))

        inputs = SettlementInputs(
            exit_request_id=request.id,
            resignation_date=request.resignation_date,
            last_working_day=request.last_working_day,
            compensation=CompensationFacts(
                monthly_ctc=profile.monthly_ctc,
                basic_salary=profile.basic_salary,
                join_date=profile.join_date,
                employment_type=profile.employment_type,
            ),
            payslip=payslip,
            asset_recoveries=tuple(recoveries),
            payable_dues=tuple(_due_line(d) for d in fetched["payable_dues"] or ()),
            recoverable_dues=tuple(_due_line(d) for d in fetched["recoverable_dues"] or ()),
            adjustments=adjustments,
        )

        logger.debug(
            "settlement_inputs_assembled",
            extra={
                "exit_request_id": str(request.id),
                "workers": self._workers,
                "payslip_found": payslip is not None,
                "asset_recoveries": len(recoveries),
                "payable_dues": len(inputs.payable_dues),
                "recoverable_dues": len(inputs.recoverable_dues),
            },
        )
        return inputs
