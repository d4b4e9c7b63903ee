class SQSError(ValueError):
    code = "InternalFailure"

    def __init__(self, message, code=None):
        super().__init__(message)
        if code is not None:
            self.code = code


class MissingParameterError(SQSError):
    code = "MissingParameter"


class InvalidParameterError(SQSError):
    code = "InvalidParameterValue"


class InvalidNameError(InvalidParameterError):
    pass


class InvalidAttributeError(SQSError):
    code = "InvalidAttributeValue"


class InvalidBodyError(SQSError):
    code = "InvalidMessageContents"


class MessageTooLongError(InvalidBodyError):
    code = "MessageTooLong"


class QueueNotFoundError(SQSError):
    code = "AWS.SimpleQueueService.NonExistentQueue"
