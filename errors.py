class GatewayError(Exception):
    """Base class for errors raised while talking to FBR"""


class TransportError(GatewayError):
    """Upstream could not be reached (DNS, refused connection, TLS, timeout)"""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class WorkflowError(GatewayError):
    """A submit step did not return the field the next step needs"""

    def __init__(self, step, message, status_code=422, response=None):
        super().__init__(message)
        self.step = step
        self.message = message
        self.status_code = status_code
        self.response = response

    def to_dict(self):
        body = {'error': self.message, 'step': self.step}
        if self.response is not None:
            body['response'] = self.response
        return body
