# -*- coding: utf-8 -*-

import argparse
import json
import logging
import os
import sys

from docker_layer_digest.converter import Converter
from docker_layer_digest.errors import DigestError
from docker_layer_digest.pipeline import GzipProfile, compare_digests, format_digest
from docker_layer_digest.version import version

PASSWORD_ENV = "DOCKER_LAYER_DIGEST_PASSWORD"


# Source: http://stackoverflow.com/questions/1383254/logging-streamhandler-and-standard-streams
class SingleLevelFilter(logging.Filter):
    def __init__(self, passlevel, reject):
        self.passlevel = passlevel
        self.reject = reject

    def filter(self, record):
        if self.reject:
            return record.levelno != self.passlevel
        else:
            return record.levelno == self.passlevel


class MyParser(argparse.ArgumentParser):
    # noinspection PyMethodMayBeStatic
    def compress_level(self, v: str) -> int:
        try:
            level = int(v)
        except ValueError:
            raise argparse.ArgumentTypeError("Integer value expected.")

        if not 1 <= level <= 9:
            raise argparse.ArgumentTypeError("Compression level must be between 1 and 9.")

        return level

    def error(self, message):
        self.print_help()
        sys.stderr.write("\nError: %s\n" % message)
        sys.exit(2)


class CLI(object):
    def __init__(self):
        handler_out = logging.StreamHandler(sys.stdout)
        handler_err = logging.StreamHandler(sys.stderr)

        handler_out.addFilter(SingleLevelFilter(logging.INFO, False))
        handler_err.addFilter(SingleLevelFilter(logging.INFO, True))

        self.log = logging.getLogger()
        formatter = logging.Formatter(
            "%(asctime)s %(filename)s:%(lineno)-10s %(levelname)-5s %(message)s"
        )

        handler_out.setFormatter(formatter)
        handler_err.setFormatter(formatter)

        self.log.addHandler(handler_out)
        self.log.addHandler(handler_err)

    def parser(self):
        parser = MyParser(
            description="Computes registry (Docker Registry HTTP API V2) digests of local image layers"
        )

        parser.add_argument(
            "-v", "--verbose", action="store_true", help="Verbose output"
        )

        parser.add_argument(
            "--version", action="version", help="Show version and exit", version=version
        )

        parser.add_argument("image", nargs="?", help="Image to compute layer digests for")

        parser.add_argument(
            "--input-tar",
            help="Path to tar file created by 'docker save'. Process tar file directly without requiring Docker daemon.",
        )
        parser.add_argument(
            "--pull",
            action="store_true",
            help="Pull the image from its registry before computing digests",
        )
        parser.add_argument(
            "--platform",
            help="Platform of the image to pull, for example 'linux/amd64'",
        )
        parser.add_argument(
            "--username",
            help="Registry user name used when pulling the image",
        )
        parser.add_argument(
            "--password",
            help="Registry password used when pulling the image. Can be provided with the %s environment variable instead."
            % PASSWORD_ENV,
        )
        parser.add_argument(
            "--tmp-dir",
            help="Directory where temporary files are created. Current working directory is used by default.",
        )
        parser.add_argument(
            "--output-path",
            help="Path where the exported image archive should be kept",
        )
        parser.add_argument(
            "--compress-level",
            type=parser.compress_level,
            default=GzipProfile().compresslevel,
            help="Gzip compression level used to recreate layer blobs (default: %(default)s)",
        )
        parser.add_argument(
            "--prefix",
            action="store_true",
            help="Print digests with the 'sha256:' prefix",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the result as a JSON document",
        )
        parser.add_argument(
            "--verify",
            nargs="+",
            metavar="DIGEST",
            help="Digests reported by the registry, in layer order, to compare the result with",
        )

        return parser

    def run(self, argv=None):
        parser = self.parser()
        args = parser.parse_args(argv)

        if not args.input_tar and not args.image:
            parser.error("Either 'image' or '--input-tar' must be specified")

        if args.input_tar and args.image:
            parser.error("Cannot specify both 'image' and '--input-tar' at the same time")

        if args.verbose:
            self.log.setLevel(logging.DEBUG)
        else:
            self.log.setLevel(logging.INFO)

        self.log.debug("Running version %s", version)

        try:
            self._run(args)
        except KeyboardInterrupt:
            self.log.error("Program interrupted by user, exiting...")
            sys.exit(1)
        except Exception:
            e = sys.exc_info()[1]

            if args.verbose:
                self.log.exception(e)
            else:
                self.log.error(str(e))

            self.log.error("Execution failed, consult logs above.")

            if isinstance(e, DigestError):
                sys.exit(e.code)

            sys.exit(1)

    def _auth_config(self, args):
        password = args.password or os.getenv(PASSWORD_ENV)

        if not args.username:
            return None

        return {"username": args.username, "password": password}

    def _run(self, args):
        converter = Converter(
            log=self.log,
            image=args.image,
            input_tar=args.input_tar,
            tmp_dir=args.tmp_dir,
            output_path=args.output_path,
            pull=args.pull,
            platform=args.platform,
            auth_config=self._auth_config(args),
            profile=GzipProfile(compresslevel=args.compress_level),
        )

        digests = converter.run()

        mismatched = []

        if args.verify:
            mismatched = compare_digests(converter.manifest.layers, digests, args.verify)

        self._print(args, converter, digests, mismatched)

        if mismatched:
            raise DigestError(
                "Digests of %s layer(s) do not match: %s"
                % (len(mismatched), ", ".join(mismatched))
            )

    def _print(self, args, converter, digests, mismatched):
        digests = [format_digest(d, args.prefix) for d in digests]

        if args.json:
            document = {
                "image": args.image or args.input_tar,
                "config": converter.manifest.config,
                "repo_tags": converter.manifest.repo_tags,
                "layers": [
                    {"path": layer, "digest": digest}
                    for layer, digest in zip(converter.manifest.layers, digests)
                ],
            }

            if args.verify:
                document["mismatched"] = mismatched

            sys.stdout.write(json.dumps(document, indent=2) + "\n")
        else:
            for digest in digests:
                sys.stdout.write(digest + "\n")


def run():
    cli = CLI()
    cli.run()


if __name__ == "__main__":
    run()
