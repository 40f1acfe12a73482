"""Wallet API views.

Read access to the caller's wallet and ledger, plus withdrawal requests.
Merchant wallets are addressed with ``?merchant_id=`` (or ``merchant_id``
in the withdrawal body) and require the caller to manage that merchant.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.pagination import StandardResultsSetPagination
from modules.merchants.repository import MerchantDjangoRepository
from modules.wallets.dtos import RequestWithdrawalDTO
from modules.wallets.exceptions import (
    DuplicatePendingWithdrawal,
    InsufficientBalance,
    WalletAccessDenied,
    WalletNotFound,
    WithdrawalValidationError,
)
from modules.wallets.repositories import WalletDjangoRepository
from modules.wallets.serializers import (
    RequestWithdrawalSerializer,
    TransactionSerializer,
    WalletSerializer,
    WithdrawalSerializer,
)
from modules.wallets.services import WithdrawalService


class _WalletLookupMixin:
    """Resolve the wallet addressed by the request, or an error response."""

    def _lookup(self, request: Request):
        repo = WalletDjangoRepository()
        merchant_id = request.query_params.get("merchant_id")
        if merchant_id:
            merchant = MerchantDjangoRepository().get_managed(merchant_id, request.user.pk)
            if merchant is None:
                return None, Response(
                    {"detail": "You do not manage this merchant."},
                    status=status.HTTP_403_FORBIDDEN,
                )
            wallet = repo.get_for_merchant(merchant.id)
        else:
            wallet = repo.get_for_user(request.user.pk)
        if wallet is None:
            return None, Response(
                {"detail": "Wallet not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return wallet, None


class WalletDetailView(_WalletLookupMixin, APIView):
    """GET /api/v1/wallet/"""

    def get(self, request: Request) -> Response:
        wallet, error = self._lookup(request)
        if error is not None:
            return error
        return Response(WalletSerializer(wallet).data)


class WalletTransactionListView(_WalletLookupMixin, APIView):
    """GET /api/v1/wallet/transactions/ (paginated, newest first)."""

    def get(self, request: Request) -> Response:
        wallet, error = self._lookup(request)
        if error is not None:
            return error
        queryset = WalletDjangoRepository().list_transactions(wallet.id)
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = TransactionSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


class WithdrawalCreateView(APIView):
    """POST /api/v1/wallet/withdrawals/"""

    throttle_scope = "withdrawal"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = WithdrawalService(
            wallet_repository=WalletDjangoRepository(),
            merchant_repository=MerchantDjangoRepository(),
        )

    def post(self, request: Request) -> Response:
        serializer = RequestWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = RequestWithdrawalDTO(
                user_id=request.user.pk,
                amount=data["amount"],
                phone_number=data["phone_number"],
                merchant_id=data.get("merchant_id"),
            )
        except PydanticValidationError as exc:
            return Response(
                {"detail": exc.errors()[0]["msg"].removeprefix("Value error, ")},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            withdrawal = self._service.request_withdrawal(dto)
        except WithdrawalValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except WalletAccessDenied as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
        except WalletNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientBalance as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except DuplicatePendingWithdrawal as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(
            WithdrawalSerializer(withdrawal).data,
            status=status.HTTP_201_CREATED,
        )
