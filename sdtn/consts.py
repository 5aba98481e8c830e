"""Protocol defaults, directory names and transport constants."""

DEFAULT_VERSION = 7
DEFAULT_LIFETIME = 3600
DEFAULT_REPORT_TO = "none"
BUNDLES_DIR = "./bundles"
DISPATCHED_DIR = "./dispatched"

BLE_SERVICE_UUID = "12345678-1234-5678-1234-56789abcdef0"
BLE_WRITE_CHAR_UUID = "12345678-1234-5678-1234-56789abcdef1"
BLE_NOTIFY_CHAR_UUID = "12345678-1234-5678-1234-56789abcdef2"
BLE_ADV_NAME = "spacearth-dtn-ble"
BLE_ACK = b"ACK\n"

TCP_ACK = "ACK"
TCP_OK = "OK"
TCP_SUCCESS = "SUCCESS"
TCP_RECEIVED = "RECEIVED"