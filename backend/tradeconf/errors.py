
class TradeConfirmError(Exception):
    """Base class for domain errors raised by the confirmation desk."""


class IngestionError(TradeConfirmError):
    pass


class EmptyInputError(IngestionError):
    def __init__(self, message: str = "File is empty"):
        super().__init__(message)


class NoDataError(IngestionError):
    def __init__(self, message: str = "No data rows found in file"):
        super().__init__(message)


class TradeNotFoundError(TradeConfirmError):
    def __init__(self, trade_id: str):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} not found")


class DuplicateTradeError(TradeConfirmError):
    def __init__(self, trade_id: str):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} already exists")


class InvalidTransitionError(TradeConfirmError):
    pass


class DocumentStateError(TradeConfirmError):
    pass
