#!/usr/bin/env python3
"""
connctl - Connection Manager CLI

Command-line interface for interacting with the connmgrd daemon.

Usage:
    connctl status      - Show connection status
    connctl wan         - Show cellular (WAN) status
    connctl info        - Show interface hardware addresses
    connctl setipv4     - Configure IPv4 on a service
    connctl setdns      - Set DNS servers on a service
    connctl setstate    - Power technologies on/off, toggle offline mode
    connctl raw         - Call any method with JSON params
"""

import sys
import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from connmgrd.rpc.server import RPCClient, RPCError


# Default socket paths
DEFAULT_SOCKET = Path("/run/connmgr/connectionmanager.sock")
DEFAULT_WAN_SOCKET = Path("/run/connmgr/wan.sock")

# on/off switches to service state values
SWITCH_VALUES = {"on": "enabled", "off": "disabled"}

# Per-technology fields in display order
STATUS_FIELDS = [
    ("interfaceName", "Interface"),
    ("ipAddress", "Address"),
    ("netmask", "Netmask"),
    ("gateway", "Gateway"),
    ("method", "Method"),
    ("ssid", "SSID"),
    ("signalLevel", "Signal"),
    ("onInternet", "Internet"),
]


class ConnCtl:
    """connctl CLI application."""

    def __init__(self, socket_path: Path, wan_socket_path: Path = DEFAULT_WAN_SOCKET):
        """Initialize CLI with socket paths."""
        self.client = RPCClient(socket_path)
        self.wan_client = RPCClient(wan_socket_path)

    def _call(self, client: RPCClient, method: str, params: Optional[dict] = None) -> Optional[dict]:
        """Call a method, printing errors. Returns the reply on success."""
        try:
            result = client.call(method, params or {})
        except RPCError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return None
        except OSError as e:
            print(f"Failed to connect to connmgrd: {e}", file=sys.stderr)
            return None

        if not isinstance(result, dict) or not result.get("returnValue"):
            self._print_failure(result)
            return None
        return result

    @staticmethod
    def _print_failure(result: Any) -> None:
        if isinstance(result, dict) and "errorText" in result:
            print(f"Error: {result['errorText']} ({result.get('errorCode')})", file=sys.stderr)
        else:
            print(f"Error: unexpected reply {result!r}", file=sys.stderr)

    def _watch(self, client: RPCClient, method: str, show) -> int:
        """Print the reply and every subsequent post until interrupted."""
        try:
            for payload in client.subscribe(method):
                if not isinstance(payload, dict) or not payload.get("returnValue"):
                    self._print_failure(payload)
                    return 1
                show(payload)
                print()
        except RPCError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"Failed to connect to connmgrd: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            pass
        return 0

    # === Status ===

    @staticmethod
    def _print_technology(label: str, status: Dict[str, Any]) -> None:
        print(f"{label}: {status.get('state', 'unknown')}")
        for key, title in STATUS_FIELDS:
            if key in status:
                print(f"  {title + ':':<11}{status[key]}")

        dns = [status[k] for k in sorted(
            (k for k in status if k.startswith("dns")), key=lambda k: int(k[3:]),
        )]
        if dns:
            print(f"  {'DNS:':<11}{', '.join(dns)}")

    def _show_status(self, result: dict) -> None:
        print("Connection Status")
        print("=" * 40)
        internet = "yes" if result.get("isInternetConnectionAvailable") else "no"
        print(f"Internet:  {internet}")
        print(f"Offline:   {result.get('offlineMode', 'unknown')}")
        print()
        for key, label in (("wired", "Wired"), ("wifi", "WiFi"), ("cellular", "Cellular")):
            if key in result:
                self._print_technology(label, result[key])

    def status(self, watch: bool = False) -> int:
        """Show connection status."""
        if watch:
            return self._watch(self.client, "getstatus", self._show_status)

        result = self._call(self.client, "getstatus")
        if result is None:
            return 1
        self._show_status(result)
        return 0

    def _show_wan(self, result: dict) -> None:
        print("WAN Status")
        print("=" * 40)
        print(f"State:     {result.get('state', 'unknown')}")
        print(f"Network:   {result.get('networkstatus', 'unknown')} ({result.get('networktype', '?')})")
        print(f"Data:      {result.get('dataaccess', 'unknown')}")

        services = result.get("connectedservices", [])
        if not services:
            print("No cellular services")
            return
        print(f"Services ({len(services)}):")
        for entry in services:
            print(f"  {', '.join(entry.get('service', [])):<12} {entry.get('connectstatus', 'unknown')}")

    def wan(self, watch: bool = False) -> int:
        """Show cellular (WAN) status."""
        if watch:
            return self._watch(self.wan_client, "getstatus", self._show_wan)

        result = self._call(self.wan_client, "getstatus")
        if result is None:
            return 1
        self._show_wan(result)
        return 0

    def info(self) -> int:
        """Show interface hardware addresses."""
        result = self._call(self.client, "getinfo")
        if result is None:
            return 1

        for key, label in (("wiredInfo", "Wired"), ("wifiInfo", "WiFi")):
            mac_address = result.get(key, {}).get("macAddress", "(unavailable)")
            print(f"{label + ':':<7}{mac_address}")
        return 0

    # === Commands ===

    def setipv4(
        self,
        method: str,
        address: Optional[str] = None,
        netmask: Optional[str] = None,
        gateway: Optional[str] = None,
        ssid: Optional[str] = None,
    ) -> int:
        """Configure IPv4 on the wired service or a WiFi network."""
        params = {"method": method}
        for key, value in (("address", address), ("netmask", netmask),
                           ("gateway", gateway), ("ssid", ssid)):
            if value is not None:
                params[key] = value

        if self._call(self.client, "setipv4", params) is None:
            return 1
        print("IPv4 configuration applied")
        return 0

    def setdns(self, servers: List[str], ssid: Optional[str] = None) -> int:
        """Set DNS servers on the wired service or a WiFi network."""
        params: Dict[str, Any] = {"dns": servers}
        if ssid is not None:
            params["ssid"] = ssid

        if self._call(self.client, "setdns", params) is None:
            return 1
        print(f"DNS servers set: {', '.join(servers)}")
        return 0

    def setstate(
        self,
        wifi: Optional[str] = None,
        wired: Optional[str] = None,
        offline: Optional[str] = None,
    ) -> int:
        """Power technologies on/off and toggle offline mode."""
        params = {}
        for key, value in (("wifi", wifi), ("wired", wired), ("offlineMode", offline)):
            if value is not None:
                params[key] = SWITCH_VALUES[value]

        if not params:
            print("Error: nothing to change (use --wifi, --wired or --offline)", file=sys.stderr)
            return 1

        if self._call(self.client, "setstate", params) is None:
            return 1
        print("State updated")
        return 0

    def raw(self, method: str, params: Optional[str] = None, wan: bool = False) -> int:
        """Call any method and print the JSON reply."""
        try:
            decoded = json.loads(params) if params else {}
        except json.JSONDecodeError as e:
            print(f"Error: invalid JSON params: {e}", file=sys.stderr)
            return 1

        client = self.wan_client if wan else self.client
        try:
            result = client.call(method, decoded)
        except RPCError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"Failed to connect to connmgrd: {e}", file=sys.stderr)
            return 1

        print(json.dumps(result, indent=2, default=str))
        return 0 if isinstance(result, dict) and result.get("returnValue") else 1


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="connctl",
        description="Connection Manager CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  status      Show connection status
  wan         Show cellular (WAN) status
  info        Show interface hardware addresses
  setipv4     Configure IPv4 on a service
  setdns      Set DNS servers on a service
  setstate    Power technologies on/off, toggle offline mode
  raw         Call any method with JSON params

Examples:
  connctl status --watch
  connctl setipv4 --method manual --address 192.168.1.5 --netmask 255.255.255.0
  connctl setdns 8.8.8.8 1.1.1.1 --ssid HomeNet
  connctl setstate --wifi off
  connctl raw getstatus '{"subscribe": false}'
""",
    )

    parser.add_argument(
        "-s", "--socket",
        type=Path,
        default=DEFAULT_SOCKET,
        help="Path to connmgrd socket",
    )
    parser.add_argument(
        "--wan-socket",
        type=Path,
        default=DEFAULT_WAN_SOCKET,
        help="Path to connmgrd WAN socket",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # status command
    status_parser = subparsers.add_parser("status", help="Show connection status")
    status_parser.add_argument("-w", "--watch", action="store_true", help="Follow status changes")

    # wan command
    wan_parser = subparsers.add_parser("wan", help="Show cellular (WAN) status")
    wan_parser.add_argument("-w", "--watch", action="store_true", help="Follow status changes")

    # info command
    subparsers.add_parser("info", help="Show interface hardware addresses")

    # setipv4 command
    ipv4_parser = subparsers.add_parser("setipv4", help="Configure IPv4 on a service")
    ipv4_parser.add_argument("--method", required=True, help="dhcp, manual, ...")
    ipv4_parser.add_argument("--address", help="IPv4 address")
    ipv4_parser.add_argument("--netmask", help="Network mask")
    ipv4_parser.add_argument("--gateway", help="Default gateway")
    ipv4_parser.add_argument("--ssid", help="WiFi network (default: wired service)")

    # setdns command
    dns_parser = subparsers.add_parser("setdns", help="Set DNS servers on a service")
    dns_parser.add_argument("dns", nargs="+", help="DNS server addresses, in order")
    dns_parser.add_argument("--ssid", help="WiFi network (default: wired service)")

    # setstate command
    state_parser = subparsers.add_parser("setstate", help="Power technologies, offline mode")
    state_parser.add_argument("--wifi", choices=SWITCH_VALUES, help="WiFi power")
    state_parser.add_argument("--wired", choices=SWITCH_VALUES, help="Wired power")
    state_parser.add_argument("--offline", choices=SWITCH_VALUES, help="Offline mode")

    # raw command
    raw_parser = subparsers.add_parser("raw", help="Call any method with JSON params")
    raw_parser.add_argument("method", help="Method name")
    raw_parser.add_argument("params", nargs="?", help="JSON object of params")
    raw_parser.add_argument("--wan", action="store_true", help="Call the WAN service")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Create CLI instance
    cli = ConnCtl(args.socket, args.wan_socket)

    # Dispatch command
    if args.command == "status":
        return cli.status(args.watch)
    elif args.command == "wan":
        return cli.wan(args.watch)
    elif args.command == "info":
        return cli.info()
    elif args.command == "setipv4":
        return cli.setipv4(args.method, args.address, args.netmask, args.gateway, args.ssid)
    elif args.command == "setdns":
        return cli.setdns(args.dns, args.ssid)
    elif args.command == "setstate":
        return cli.setstate(args.wifi, args.wired, args.offline)
    elif args.command == "raw":
        return cli.raw(args.method, args.params, args.wan)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
