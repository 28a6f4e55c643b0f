"""
Echo Bot Example - Echoes back every text message received.

This is a simple example bot that demonstrates:
- Client initialization with a session directory or MongoDB auth store
- QR code and pairing code login
- Message event handling with decorators
- Reconnect and logout events

The protocol layer is loaded from a ``module:attribute`` path and must provide
``make_socket``, ``init_auth_creds`` and ``decode_app_state_sync_key``.

Usage:
    python echo_bot.py --bindings my_protocol:bindings --session ./echo_session
    python echo_bot.py --bindings my_protocol:bindings --phone 5511999999999 \\
        --mongodb mongodb://localhost:27017
"""

import argparse
import asyncio
import importlib
import logging

from whatsapp_session import WhatsAppClient, RetryExhaustedError

logger = logging.getLogger(__name__)


def load_bindings(path: str):
    """Import protocol bindings from a ``module:attribute`` path."""
    module_name, _, attribute = path.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attribute or "bindings")


def message_text(message) -> str:
    content = message.get("message") or {}
    return content.get("conversation") or (
        content.get("extendedTextMessage") or {}
    ).get("text", "")


async def main():
    """Run the echo bot."""
    parser = argparse.ArgumentParser(description="Echo bot for WhatsApp")
    parser.add_argument("--bindings", required=True, help="Protocol bindings (module:attribute)")
    parser.add_argument(
        "--session",
        default="./echo_session",
        help="Session directory (default: ./echo_session)",
    )
    parser.add_argument("--phone", default=None, help="Phone number for pairing code login")
    parser.add_argument("--mongodb", default=None, help="MongoDB URL for the auth store")
    parser.add_argument("--log", default="./echo_bot.log", help="Log file")
    args = parser.parse_args()

    options = {
        "session_dir": args.session,
        "phone_number": args.phone,
        "log_path": args.log,
    }
    if args.mongodb:
        options["auth_store"] = {"url": args.mongodb, "collection_name": "echo_bot"}

    client = WhatsAppClient(load_bindings(args.bindings), **options)
    stopped = asyncio.Event()

    @client.on("qr")
    def show_qr(code):
        logger.info(f"Scan this QR code with WhatsApp: {code}")

    @client.on("pairingCode")
    def show_pairing_code(code):
        logger.info(f"Enter this code in WhatsApp > Linked devices: {code}")

    @client.on("ready")
    def ready():
        logger.info("Echo bot connected. Waiting for messages...")

    @client.on("message")
    async def handle_message(message):
        """Echo text messages back to the chat they came from."""
        key = message.get("key") or {}
        if key.get("fromMe"):
            return
        text = message_text(message)
        if not text:
            return

        try:
            await client.send_text(key["remoteJid"], f"Echo: {text}")
        except Exception as e:
            logger.error(f"Failed to send response: {e}")

    @client.on("logout")
    def logged_out():
        logger.info("Session logged out; delete the session to pair again")
        stopped.set()

    @client.on("error")
    def on_error(error):
        logger.error(f"Client error: {error}")
        if isinstance(error, RetryExhaustedError):
            stopped.set()

    await client.start()
    await stopped.wait()


if __name__ == "__main__":
    asyncio.run(main())
