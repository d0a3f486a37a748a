# scripts/mint_token.py
import os  # read environment variables
import argparse  # parse CLI args

from admitone.config import DEFAULT_SIGNING_SECRET  # fallback secret for local runs
from admitone.security import mint_station_token  # sign the station token

def main() -> None:  # main entrypoint
    parser = argparse.ArgumentParser(description="Mint a door-station token for /scanner and /checkin")  # CLI parser
    parser.add_argument("--station", required=True)  # station name recorded as redeemed_by
    parser.add_argument("--ttl-minutes", type=int, default=12 * 60)  # token lifetime (event day)
    parser.add_argument("--base-url", default=os.environ.get("BASE_URL", ""))  # print a ready scanner link when set
    args = parser.parse_args()  # parse args

    secret = os.environ.get("TICKET_SIGNING_SECRET", DEFAULT_SIGNING_SECRET)  # signing secret
    token = mint_station_token(args.station, secret, ttl_minutes=args.ttl_minutes)  # sign token

    print(token)  # output token to stdout
    if args.base_url:  # optional convenience link for door staff
        print(f"{args.base_url.rstrip('/')}/scanner?station={token}")

if __name__ == "__main__":  # run as script
    main()  # call main
