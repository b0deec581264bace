"""
Web API example: post a message, react to it, list and remove reactions
"""

import argparse
import logging
import os
import sys

from slackgw import ClientConfig, SlackClient
from slackgw.chat import msg_option_text


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--debug", action="store_true", help="Log requests")
    args = parser.parse_args()
    if args.debug:
        logging.basicConfig(level=logging.DEBUG)

    token = os.getenv("SLACK_BOT_TOKEN")
    if not token:
        print("SLACK_BOT_TOKEN environment variable is required")
        sys.exit(1)

    with SlackClient(ClientConfig(token=token, debug=args.debug)) as api:
        try:
            auth = api.auth_test()
            # Posting to a DM with yourself opens a conversation with slackbot.
            channel = api.open_conversation(users=[auth["user_id"]])
            print(f"Posting as {auth['user']} ({auth['user_id']}) in {channel['id']}")

            channel_id, ts = api.post_message(channel["id"], msg_option_text("Is this any good?", False))

            api.add_reaction("+1", channel_id, ts)
            api.add_reaction("cry", channel_id, ts)
            for reaction in api.get_reactions(channel_id, ts):
                print(f"  {reaction['count']} users say {reaction['name']}")

            api.remove_reaction("cry", channel_id, ts)
            reactions = api.get_reactions(channel_id, ts)
            print(f"\n{len(reactions)} reactions after removing cry")
        except Exception as e:
            print(f"Error: {e}")


if __name__ == "__main__":
    main()
