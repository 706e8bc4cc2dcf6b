import argparse
import json
import logging
import os
import sys

from keyseal_crypto import (
    EnvelopeError,
    encrypt_file as module_encrypt_file,
    decrypt_file as module_decrypt_file,
    read_metadata,
)

# Default RSA Public Key file path
RSA_default_public_key_path = '~/.ssh/id_rsa.pub'
RSA_default_public_key = os.path.expanduser(RSA_default_public_key_path)


def main(argv=None):
    parser = argparse.ArgumentParser(description="RSA envelope Encryption/Decryption Tool")

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument('-e', '--encrypt', action='store_true', help='Encrypt file under an RSA public key')
    action_group.add_argument('-d', '--decrypt', action='store_true', help='Decrypt file with the matching RSA private key')
    action_group.add_argument('--metadata', action='store_true', help='Print the envelope metadata of an encrypted file')

    parser.add_argument('-i', '--keyfile', help=f'RSA key file (public key for encryption, private key for decryption), Default:{RSA_default_public_key_path}')
    parser.add_argument('file', nargs='?', help='File to encrypt or decrypt')
    parser.add_argument('-o', '--output', help='Output file for encrypted/decrypted content')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log key format detection details')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    # Parameter validation
    if args.encrypt or args.decrypt or args.metadata:
        if not args.file:
            parser.error("-e, -d or --metadata requires a file.")
    if args.encrypt or args.decrypt:
        if not args.keyfile:
            if args.encrypt and os.path.exists(RSA_default_public_key):
                args.keyfile = RSA_default_public_key
            else:
                parser.error("-e or -d requires -i (key file).")

    try:
        if args.encrypt:
            out = module_encrypt_file(args.file, args.output, public_key_path=args.keyfile)
            print(f"File '{args.file}' successfully encrypted to '{out}'")
        elif args.decrypt:
            out = module_decrypt_file(args.file, output_path=args.output, private_key_path=args.keyfile)
            print(f"File '{args.file}' successfully decrypted to '{out}'")
        elif args.metadata:
            record = read_metadata(args.file)
            print(json.dumps(record.to_dict(), indent=2))
        else:
            parser.print_help()
    except (EnvelopeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
