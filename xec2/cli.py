# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""xec2 CLI"""

from typing import Optional, Sequence, List, TextIO, cast

import os
import sys
import argparse
import argcomplete # type: ignore[import]
import json
import colorama # type: ignore[import]
from colorama import Fore, Style

from .internal_types import Jsonable
from .version import __version__ as pkg_version
from .config import Xec2Config, load_config_file
from .tags import validate_instances, describe_tag_contract
from .image import normalize_ssm_parameter_path
from .discovery import Boto3CloudDiscovery
from .resolver import resolve_instances

def is_colorizable(stream: TextIO) -> bool:
  is_a_tty = hasattr(stream, 'isatty') and stream.isatty()
  return is_a_tty

class CmdExitError(RuntimeError):
  exit_code: int

  def __init__(self, exit_code: int, msg: Optional[str]=None):
    if msg is None:
      msg = f"Command exited with return code {exit_code}"
    super().__init__(msg)
    self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
  pass

class NoExitArgumentParser(argparse.ArgumentParser):
  def exit(self, status=0, message=None):
    if message:
      self._print_message(message, sys.stderr)
    raise ArgparseExitError(status, message)

class CommandLineInterface:
  _argv: Optional[Sequence[str]]
  _parser: argparse.ArgumentParser
  _args: argparse.Namespace

  _raw: bool = False
  _compact: bool = False
  _output_file: Optional[str] = None
  _encoding: str = 'utf-8'
  _region: Optional[str] = None

  _colorize_stdout: bool = False
  _colorize_stderr: bool = False

  def __init__(self, argv: Optional[Sequence[str]]=None):
    self._argv = argv

  def ecolor(self, codes: str) -> str:
    return codes if self._colorize_stderr else ""

  def pretty_print(
        self,
        value: Jsonable,
        compact: Optional[bool]=None,
        raw: Optional[bool]=None,
      ):

    if raw is None:
      raw = self._raw
    if compact is None:
      compact = self._compact

    def emit_to(f: TextIO):
      if raw and isinstance(value, str):
        f.write(value)
      elif compact:
        json.dump(value, f, separators=(',', ':'), sort_keys=True)
      else:
        json.dump(value, f, indent=2, sort_keys=True)
      f.write('\n')

    output_file = self._output_file
    if output_file is None:
      emit_to(sys.stdout)
    else:
      with open(output_file, "w", encoding=self._encoding) as f:
        emit_to(f)

  def load_config(self) -> Xec2Config:
    return load_config_file(self._args.config_file)

  def cmd_bare(self) -> int:
    print("A command is required", file=sys.stderr)
    return 1

  def cmd_version(self) -> int:
    self.pretty_print(pkg_version)
    return 0

  def cmd_required_tags(self) -> int:
    self.pretty_print(describe_tag_contract())
    return 0

  def cmd_normalize_path(self) -> int:
    paths: List[str] = self._args.paths
    results = [ normalize_ssm_parameter_path(x) for x in paths ]
    if len(results) == 1:
      self.pretty_print(results[0])
    else:
      self.pretty_print(cast(Jsonable, results))
    return 0

  def cmd_validate(self) -> int:
    cfg = self.load_config()
    validate_instances(cfg.instances)
    self.pretty_print(dict(valid=True, instances=cast(Jsonable, [ x.name for x in cfg.instances ])))
    return 0

  def cmd_resolve(self) -> int:
    cfg = self.load_config()
    region = self._region
    if region is None:
      region = cfg.region
    discovery = Boto3CloudDiscovery(region_name=region)
    resolved = resolve_instances(
        cfg.instances,
        cfg.network,
        discovery,
        default_tags=cfg.default_tags,
        apply_guardrails=not self._args.no_guardrails,
      )
    self.pretty_print(cast(Jsonable, [ x.as_jsonable() for x in resolved ]))
    return 0

  def run(self) -> int:
    """Run the xec2 command-line tool with provided arguments

    Returns:
        int: The exit code that would be returned if this were run as a standalone command.
    """
    parser = NoExitArgumentParser(description="Validate and resolve declarative EC2 instance lists.")

    # ======================= Main command

    self._parser = parser
    parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                        help='Display detailed exception information')
    parser.add_argument('-M', '--monochrome', action='store_true', default=False,
                        help='Output to stdout/stderr in monochrome. Default is to colorize if stream is a compatible terminal')
    parser.add_argument('-c', '--compact', action='store_true', default=False,
                        help='Compact instead of pretty-printed output')
    parser.add_argument('-r', '--raw', action='store_true', default=False,
                        help='''Output raw strings directly, not json-encoded.
                                Values embedded in structured results are not affected.''')
    parser.add_argument('-o', '--output', dest="output_file", default=None,
                        help='Write output value to the specified file instead of stdout')
    parser.add_argument('--text-encoding', default='utf-8',
                        help='The encoding used for text. Default  is utf-8')
    parser.add_argument('--region', default=None,
                        help='The AWS region to query. Default is the config file "region", then the AWS profile default')
    parser.set_defaults(func=self.cmd_bare)

    subparsers = parser.add_subparsers(
                        title='Commands',
                        description='Valid commands',
                        help='Additional help available with "xec2 <command-name> -h"')

    # ======================= version

    parser_version = subparsers.add_parser('version',
                            description='''Display version information. JSON-quoted string. If a raw string is desired, use -r.''')
    parser_version.set_defaults(func=self.cmd_version)

    # ======================= required-tags

    parser_required_tags = subparsers.add_parser('required-tags',
                            description='''Display the tags every instance must carry, and their allowed values.''')
    parser_required_tags.set_defaults(func=self.cmd_required_tags)

    # ======================= normalize-path

    parser_normalize_path = subparsers.add_parser('normalize-path',
                            description='''Normalize one or more SSM parameter paths as they would be looked up.''')
    parser_normalize_path.add_argument('paths', nargs='+',
                        help='SSM parameter paths, optionally prefixed with "ssm:"')
    parser_normalize_path.set_defaults(func=self.cmd_normalize_path)

    # ======================= validate

    parser_validate = subparsers.add_parser('validate',
                            description='''Validate the instances in a config file without accessing AWS.''')
    parser_validate.add_argument('config_file',
                        help='YAML or JSON file with "instances" and "network" keys')
    parser_validate.set_defaults(func=self.cmd_validate)

    # ======================= resolve

    parser_resolve = subparsers.add_parser('resolve',
                            description='''Resolve the network context and AMI of every instance in a config file,
                                           querying AWS. Nothing is created.''')
    parser_resolve.add_argument('--no-guardrails', action='store_true', default=False,
                        help='Report instances with no VPC, subnet or security group instead of failing')
    parser_resolve.add_argument('config_file',
                        help='YAML or JSON file with "instances" and "network" keys')
    parser_resolve.set_defaults(func=self.cmd_resolve)

    argcomplete.autocomplete(parser)
    try:
      args = parser.parse_args(self._argv)
    except ArgparseExitError as ex:
      return ex.exit_code
    traceback: bool = args.traceback
    try:
      self._args = args
      self._raw = args.raw
      self._compact = args.compact
      self._output_file = args.output_file
      self._encoding = args.text_encoding
      self._region = args.region
      monochrome: bool = args.monochrome
      if not monochrome:
        self._colorize_stdout = is_colorizable(sys.stdout)
        self._colorize_stderr = is_colorizable(sys.stderr)
        if self._colorize_stdout or self._colorize_stderr:
          colorama.init(wrap=False)
          if self._colorize_stderr:
            new_stream = colorama.AnsiToWin32(sys.stderr)
            if new_stream.should_wrap():
              sys.stderr = new_stream
      if not self._output_file is None:
        self._output_file = os.path.abspath(os.path.expanduser(self._output_file))
      rc = args.func()
    except Exception as ex:
      if isinstance(ex, CmdExitError):
        rc = ex.exit_code
      else:
        rc = 1
      if rc != 0:
        if traceback:
          raise

        print(f"{self.ecolor(Fore.RED)}xec2: error: {ex}{self.ecolor(Style.RESET_ALL)}", file=sys.stderr)
    return rc

  @property
  def args(self) -> argparse.Namespace:
    return self._args

def run(argv: Optional[Sequence[str]]=None) -> int:
  try:
    rc = CommandLineInterface(argv).run()
  except CmdExitError as ex:
    rc = ex.exit_code
  return rc
