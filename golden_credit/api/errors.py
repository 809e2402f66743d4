from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from golden_credit.core.errors import ClientIdSpaceExhausted, ErrorKind, LedgerError

STATUS_BY_KIND = {
    ErrorKind.DUPLICATE_CLIENT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_AMOUNT: 422,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.REMOTE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PARSE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content={"detail": exc.message, "kind": exc.kind.value},
    )


async def capacity_error_handler(request: Request, exc: ClientIdSpaceExhausted) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
        content={"detail": str(exc), "kind": "capacity"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(ClientIdSpaceExhausted, capacity_error_handler)
