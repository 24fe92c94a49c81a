"""Centralized engine constants."""

# Name of the page -> host message channel registered on every page
BRIDGE_NAME = "bridge"

# Message body posted by the bootstrap script once the document is complete
READY_MESSAGE = "finishedLoading"

# Injected into every new document; reports back once the page has loaded
ONLOAD_SCRIPT = (
    "if (window.addEventListener) {\n"
    "  var documentIsReady = function() {\n"
    "    window." + BRIDGE_NAME + '(JSON.stringify({ body: "' + READY_MESSAGE + '" }));\n'
    "  };\n"
    '  if (document.readyState === "complete") {\n'
    "    window.setTimeout(documentIsReady, 0);\n"
    "  } else {\n"
    '    window.addEventListener("load", function() {\n'
    "      window.setTimeout(documentIsReady, 0);\n"
    "    });\n"
    "  }\n"
    "}\n"
)

# Used as the document URL when raw HTML is loaded without a base URL
DEFAULT_HTML_BASE_URL = "http://autowebkit.localhost/"

# Browser defaults
SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")
DEFAULT_BROWSER = "chromium"
DEFAULT_VIEWPORT = (1280, 720)

# Timeouts
DEFAULT_RUN_TIMEOUT = 120  # seconds, caller-side watchdog for a whole script
DEFAULT_PUMP_INTERVAL_MS = 50
