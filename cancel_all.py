"""Script to show positions and cancel all open orders on the perps venue."""
import asyncio
import os
import sys

from dotenv import load_dotenv

from perpbot.bot.volume_bot import open_order_list
from perpbot.client import VenueClient
from perpbot.core.errors import PerpBotError

# Load environment - try local first, then VPS path
if os.path.exists('.env'):
    load_dotenv('.env')
else:
    load_dotenv('/opt/perpbot/.env')


def _rows(resp):
    if isinstance(resp, dict):
        resp = resp.get('result', [])
    return resp if isinstance(resp, list) else []


async def main(symbol=None, assume_yes=False) -> int:
    client = VenueClient(
        perps_url=os.environ.get('PB_PERPS_URL', 'https://perps.standx.com'),
        auth_url=os.environ.get('PB_AUTH_URL', 'https://api.standx.com'),
        chain=os.environ.get('PB_CHAIN', 'bsc'),
    )
    try:
        session = await client.authenticate(os.environ.get('PB_PRIVATE_KEY'))
        print(f"Authenticated as {session.wallet_address}")

        print("\n=== Current Positions ===")
        for p in _rows(await client.get_positions(symbol)):
            qty = p.get('qty', '0')
            try:
                if float(qty) == 0:
                    continue
            except (TypeError, ValueError):
                pass
            print(f"{p.get('symbol', 'unknown')}: qty={qty}, entry={p.get('entry_price', 'N/A')}")

        balance = await client.get_balance()
        if isinstance(balance, dict):
            print(f"\nEquity: {balance.get('equity', 'N/A')}")

        print("\n=== Open Orders ===")
        open_orders = open_order_list(await client.get_open_orders(symbol))
        print(f'Total open orders: {len(open_orders)}')

        by_symbol = {}
        for o in open_orders:
            sym = o.get('symbol', 'unknown')
            by_symbol[sym] = by_symbol.get(sym, 0) + 1
        for sym, count in sorted(by_symbol.items()):
            print(f'  {sym}: {count} orders')

        if not open_orders:
            return 0

        if assume_yes:
            confirm = 'yes'
        else:
            confirm = input("\nCancel ALL orders? Type 'yes' to confirm: ")

        if confirm.lower() != 'yes':
            print("Cancelled. No orders were modified.")
            return 0

        print("\nCancelling all orders...")
        cancelled = await client.cancel_all_orders(symbol)
        print(f"Cancelled {len(cancelled)} orders")
        print("\n=== Done ===")
        return 0
    except PerpBotError as e:
        print(f"Failed: {e}")
        return 1
    finally:
        await client.close()


if __name__ == '__main__':
    args = [a for a in sys.argv[1:] if a != '--yes']
    sys.exit(asyncio.run(main(symbol=args[0] if args else None, assume_yes='--yes' in sys.argv[1:])))
