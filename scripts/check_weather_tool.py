"""
check_weather_tool.py
Runs the get_weather tool once against the live Open-Meteo APIs.
Run:
    python scripts/check_weather_tool.py
"""

import asyncio
import json
import logging

from weather_chat.core.weather_api import OpenMeteoClient
from weather_chat.core.weather_tool import get_weather

# ------------------ PARAMETERS ------------------
LOCATION = "San Francisco, CA"  # free-text place name
UNIT = "celsius"  # "celsius" or "fahrenheit"
VERIFY_TLS = True  # set False only behind a TLS-intercepting proxy
# ------------------------------------------

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s - %(message)s"
)


async def _main():
    client = OpenMeteoClient(verify_tls=VERIFY_TLS)
    report = await get_weather({"location": LOCATION, "unit": UNIT}, client)
    print(json.dumps(report.model_dump(), indent=2))


if __name__ == "__main__":
    asyncio.run(_main())
