"""
RTM example: echo every plain message back, in a thread unless it is a DM
"""

import asyncio
import os
import sys

from slackgw import AuthRejected, ClientConfig, RTMClient, SlackClient


async def main():
    token = os.getenv("SLACK_BOT_TOKEN")
    if not token:
        print("SLACK_BOT_TOKEN environment variable is required")
        sys.exit(1)

    api = SlackClient(ClientConfig(token=token))
    rtm = RTMClient(api)

    try:
        await rtm.start()
        async for event in rtm.events():
            if event.type != "message" or event.data.get("subtype"):
                continue

            message = event.data
            # Reply in a thread unless this is a direct message.
            thread_ts = message.get("thread_ts")
            if not thread_ts and not message.get("channel", "").startswith("D"):
                thread_ts = message.get("ts")

            ack = await rtm.send_message(
                f"echo {message.get('text', '')}", message["channel"], thread_ts
            )
            try:
                reply = await ack
                print(f"✓ Echoed at {reply.get('ts')}")
            except Exception as e:
                print(f"Echo failed: {e}")

    except AuthRejected:
        print("Invalid token")
    finally:
        await rtm.stop()
        await api.aclose()


if __name__ == "__main__":
    asyncio.run(main())
