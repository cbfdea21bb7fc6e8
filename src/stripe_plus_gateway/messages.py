"""User-facing messages returned by the gateway."""

AUTH_FAILED = "Could not authenticate with the Stripe gateway."
LIVE_API_KEY_EMPTY = "Please enter a live API Key."
TEST_API_KEY_EMPTY = "Please enter a test API Key."
ENVIRONMENT_FORMAT = "Please select a valid API key for use."
REFUND_FAILED = "Request to process refund failed."
CARD_DECLINED = "Your card was declined."
CUSTOMER_DELETED = "The requested customer has been manually deleted."
GENERAL_ERROR = "An unexpected error occurred with the Stripe gateway."
UNSUPPORTED = "This action is not supported by the gateway."
