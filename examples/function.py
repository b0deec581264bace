"""
Socket Mode example: complete a custom workflow function
"""

import asyncio
import logging
import os
import sys

from slackgw import ClientConfig, SlackClient, SocketModeClient


async def main():
    bot_token = os.getenv("SLACK_BOT_TOKEN")
    if not bot_token:
        print("SLACK_BOT_TOKEN environment variable is required")
        sys.exit(1)

    app_token = os.getenv("SLACK_APP_TOKEN")
    if not app_token:
        print("SLACK_APP_TOKEN environment variable is required")
        sys.exit(1)

    logging.basicConfig(level=logging.DEBUG)
    api = SlackClient(ClientConfig(token=bot_token, app_token=app_token, debug=True))

    async with SocketModeClient(api) as client:
        async for event in client.events():
            if event.type != "events_api":
                print(f"Unexpected event type received: {event.type}", file=sys.stderr)
                continue

            print(f"Event received: {event.data}")
            await event.ack()

            inner = event.data.get("event", {})
            if inner.get("type") != "function_executed":
                continue
            if inner.get("function", {}).get("callback_id") != "sample_function":
                continue

            outputs = {"user_id": inner.get("inputs", {}).get("user_id")}
            try:
                await asyncio.to_thread(
                    api.function_complete_success, inner["function_execution_id"], outputs
                )
            except Exception as e:
                print(f"failed posting message: {e}")

    await api.aclose()


if __name__ == "__main__":
    asyncio.run(main())
