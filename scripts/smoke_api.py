#!/usr/bin/env python3
"""
Nearest Station AQI API Smoke Check
-----------------------------------
Exercises a running server (uvicorn nearest_aqi.main:app) against the real
OpenAQ upstream. Not part of the pytest suite.
"""

import json
import sys

import requests

# API Configuration
BASE_URL = "http://localhost:8000"
API_BASE_URL = f"{BASE_URL}/api/v1"

# A few well-instrumented and sparsely-instrumented places
LOCATIONS = {
    "los_angeles": (34.0522, -118.2437),
    "columbia_sc": (34.05, -81.03),
    "london": (51.5074, -0.1278),
    "mid_pacific": (0.0, -160.0),
}


# Colors for terminal output
class Colors:
    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    END = "\033[0m"


def print_header(message):
    print(f"\n{Colors.BOLD}{Colors.BLUE}{'=' * 80}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.BLUE}  {message}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.BLUE}{'=' * 80}{Colors.END}\n")


def print_success(message):
    print(f"{Colors.GREEN}✓ {message}{Colors.END}")


def print_error(message):
    print(f"{Colors.RED}✗ {message}{Colors.END}")


def print_info(message):
    print(f"{Colors.YELLOW}• {message}{Colors.END}")


def check_root_endpoint():
    """Check the root endpoint"""
    print_header("Checking Root Endpoint")
    try:
        response = requests.get(f"{BASE_URL}/", timeout=10)
        if response.status_code == 200:
            print_success(f"Root endpoint is working. Message: {response.json()['message']}")
            return True
        print_error(f"Root endpoint failed with status code: {response.status_code}")
        return False
    except requests.exceptions.RequestException as e:
        print_error(f"Connection error: {e}")
        return False


def check_nearest(name, lat, lon):
    """Check the nearest-station endpoint for one location"""
    print_header(f"Checking Nearest Station: {name} ({lat}, {lon})")
    try:
        response = requests.get(
            f"{API_BASE_URL}/air_quality/nearest", params={"lat": lat, "lon": lon}, timeout=60
        )
    except requests.exceptions.RequestException as e:
        print_error(f"Connection error: {e}")
        return False

    print_info(f"Cache-Control: {response.headers.get('cache-control')}")
    if response.status_code != 200:
        print_error(f"Nearest endpoint failed with status code: {response.status_code}")
        print_error(f"Response: {response.text}")
        return False

    data = response.json()
    if data.get("stations") == []:
        print_info("No active station with usable readings found")
        return True

    station = data["station"]
    print_success(f"Station {station['id']} '{station['name']}' at {station['distanceMi']} mi, AQI={data['aqi']}")
    print(json.dumps(data["readings"], indent=2))
    return True


def check_bad_input():
    """Missing longitude must be rejected with 400"""
    print_header("Checking Input Validation")
    try:
        response = requests.get(f"{API_BASE_URL}/air_quality/nearest", params={"lat": 34.05}, timeout=10)
    except requests.exceptions.RequestException as e:
        print_error(f"Connection error: {e}")
        return False
    if response.status_code == 400:
        print_success(f"Rejected as expected: {response.json()}")
        return True
    print_error(f"Expected 400, got {response.status_code}")
    return False


def run_all_checks():
    print_header("RUNNING ALL API CHECKS")

    checks = [("Root Endpoint", check_root_endpoint), ("Input Validation", check_bad_input)]
    checks += [
        (f"Nearest {name}", lambda name=name, coords=coords: check_nearest(name, *coords))
        for name, coords in LOCATIONS.items()
    ]

    results = []
    for name, check in checks:
        try:
            results.append((name, check()))
        except Exception as e:
            print_error(f"Uncaught exception in {name} check: {e}")
            results.append((name, False))

    print_header("SUMMARY")
    success_count = 0
    for name, success in results:
        if success:
            print_success(f"{name}: PASSED")
            success_count += 1
        else:
            print_error(f"{name}: FAILED")

    success_rate = (success_count / len(results)) * 100 if results else 0
    print(f"\n{Colors.BOLD}Checks passed: {success_count}/{len(results)} ({success_rate:.1f}%){Colors.END}")
    return success_count == len(results)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        target = sys.argv[1].lower()
        if target == "root":
            check_root_endpoint()
        elif target == "validation":
            check_bad_input()
        elif target in LOCATIONS:
            check_nearest(target, *LOCATIONS[target])
        else:
            print_error(f"Unknown check: {target}")
            print_info(f"Available checks: root, validation, {', '.join(LOCATIONS)}")
    else:
        sys.exit(0 if run_all_checks() else 1)
