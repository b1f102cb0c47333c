PAGE_SIZE = 10
TIME_RANGE_MIN_MS = 1000

TIMESTAMP_FIELD = "_timestamp"
DATA_PREFIX = "data."
EXCLUDED_COLUMNS = {"id", "timestamp"}

OPERATORS = (
    "equals",
    "not_equals",
    "less_than",
    "less_equal",
    "greater_than",
    "greater_equal",
    "contains",
    "between",
)
OPERATOR_LABELS = {
    "equals": "Equal to",
    "not_equals": "Not Equal to",
    "less_than": "Less than",
    "less_equal": "Less or equal to",
    "greater_than": "Greater than",
    "greater_equal": "Greater or equal to",
    "contains": "Contains",
    "between": "Between",
}
SORT_ORDERS = ("desc", "asc")

INTEGRAL_TYPES = {"LONG", "INTEGER"}
NUMERIC_TYPES = INTEGRAL_TYPES | {"FLOAT", "DOUBLE"}

PERIOD_UNITS = {"seconds": "s", "minutes": "m", "hours": "h", "days": "d"}
PERIOD_SELECTS = ("custom", "15m", "1h", "6h", "24h", "7d")

LINE_COLORS = ["#9e8cd9", "#f3a534", "#9bc95b", "#50e3c2"]
HEALTH_COLOR = "#000"
GRID_COLOR = "#B2B2B2"
BORDER_COLOR = "#EEEEEE"
CHART_HEIGHT = 230
HEALTH_WIDTH = 100
HEALTH_HEIGHT = 40

FIELDS_TTL_SEC = 60 * 10
