#!/usr/bin/env python3
from tele_weather_alerts.main import run

if __name__ == "__main__":
    run()
