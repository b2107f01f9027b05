"""Jinja2 sources for the wrapper files.

Every top-level variable referenced by a template is one of its declared
placeholders; see :class:`PlaceholderRenderer`.
"""

DOCKERFILE_TEMPLATE = """\
# Development image for {{ project_name }}
# Ecosystem: {{ ecosystem }} (detected from {{ signature_file }})
# Toolchain: {{ toolchain_version }}
#
# Built by `./{{ script_name }} docker`. The project is not copied into the
# image; it is mounted at {{ workdir }} by every `./{{ script_name }}` command.
{% for layer in layers %}

{{ layer }}
{% endfor %}
"""

RUN_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash
# Development environment driver for {{ project_name }}.
# Usage: ./{{ script_name }} {docker|build|run|test|sh} [args...]
set -euo pipefail

SCRIPT_DIR="$(cd "$(dirname "${BASH_SOURCE[0]}")" && pwd)"
IMAGE={{ image_name | shquote }}
CONTAINER_HOSTNAME={{ hostname | shquote }}
PROJECT_DIR="${SCRIPT_DIR}/"{{ project_dir | shquote }}
WORKDIR={{ workdir | shquote }}
DOCKERFILE="${SCRIPT_DIR}/"{{ dockerfile_name | shquote }}
ENV_SETUP={{ env_setup | shquote }}

BUILD_CMD={{ build_command | shquote }}
RUN_CMD={{ run_command | shquote }}
TEST_CMD={{ test_command | shquote }}

CACHE_DIRS=(
{% for mount in cache_dirs %}
  {{ mount.host_path | shquote }}
{% endfor %}
)

MOUNTS=(-v "${PROJECT_DIR}:${WORKDIR}")
{% for mount in cache_dirs %}
MOUNTS+=(-v "${SCRIPT_DIR}/"{{ mount.as_pair() | shquote }})
{% endfor %}

PORTS=()
{% for port in ports %}
PORTS+=(-p {{ port.as_pair() | shquote }})
{% endfor %}

usage() {
  echo "Usage: $0 {docker|build|run|test|sh} [args...]" >&2
  echo "  docker  build the development image ${IMAGE}" >&2
  echo "  build   run the project build inside a container" >&2
  echo "  run     run the project inside a container (ports published)" >&2
  echo "  test    run the project tests inside a container" >&2
  echo "  sh      open a shell (ports published), or run 'sh <command>' without ports" >&2
}

ensure_cache_dirs() {
  local dir
  for dir in ${CACHE_DIRS[@]+"${CACHE_DIRS[@]}"}; do
    mkdir -p "${SCRIPT_DIR}/${dir}"
  done
}

require_configured() {
  case "$2" in
    TODO*)
      echo "$0: the '$1' command is not configured ($2); edit ${BASH_SOURCE[0]} to set it." >&2
      exit 2
      ;;
  esac
}

in_container() {
  local publish="$1"
  shift
  local flags=(--rm -i --cap-add=SYS_PTRACE --security-opt seccomp=unconfined
    --hostname "${CONTAINER_HOSTNAME}" -w "${WORKDIR}")
  if [ -t 0 ] && [ -t 1 ]; then
    flags+=(-t)
  fi
  if [ "${publish}" = "1" ]; then
    flags+=(${PORTS[@]+"${PORTS[@]}"})
  fi
  ensure_cache_dirs
  exec docker run "${flags[@]}" "${MOUNTS[@]}" "${IMAGE}" bash -c "${ENV_SETUP}; $*"
}

if [ $# -lt 1 ]; then
  usage
  exit 64
fi

subcommand="$1"
shift

case "${subcommand}" in
  docker)
    ensure_cache_dirs
    exec docker build "$@" -t "${IMAGE}" - < "${DOCKERFILE}"
    ;;
  build)
    require_configured build "${BUILD_CMD}"
    in_container 0 "${BUILD_CMD}"
    ;;
  run)
    require_configured run "${RUN_CMD}"
    in_container 1 "${RUN_CMD}"
    ;;
  test)
    require_configured test "${TEST_CMD}"
    in_container 0 "${TEST_CMD}"
    ;;
  sh)
    if [ $# -gt 0 ]; then
      in_container 0 "$*"
    else
      in_container 1 "exec bash"
    fi
    ;;
  *)
    usage
    exit 64
    ;;
esac
"""

README_TEMPLATE = """\
# {{ project_name }} development environment

This wrapper provides an isolated, reproducible container environment for
`{{ project_dir }}/`. The project itself is never modified: it is mounted at
`{{ workdir }}` inside short-lived containers that are removed when each
command exits.

## Commands

- `./{{ script_name }} docker` builds the image `{{ image_name }}` from `{{ dockerfile_name }}`.
- `./{{ script_name }} build` runs `{{ build_command }}`.
- `./{{ script_name }} test` runs `{{ test_command }}`.
- `./{{ script_name }} run` runs `{{ run_command }}`.
- `./{{ script_name }} sh` opens a shell with ports published; `./{{ script_name }} sh <command>` runs one command without publishing ports.

A command shown as `TODO(...)` could not be determined from the project and
exits with status 2 until it is set in `{{ script_name }}`.

## Detected environment

- Ecosystem: {{ ecosystem }}
- Package manager: {{ package_manager }}
- Toolchain: {{ toolchain_version }}
{% if published_ports %}
- Published ports (run, interactive sh): {{ published_ports | join(", ") }}
{% endif %}
{% if secondary_ecosystems %}

## Secondary ecosystems (not provisioned)

{% for eco in secondary_ecosystems %}
- TODO(secondary:{{ eco }}): add a toolchain layer to `{{ dockerfile_name }}` if this part of the project is needed.
{% endfor %}
{% endif %}
{% if open_items %}

## Open items

{% for item in open_items %}
- {{ item }}
{% endfor %}
{% endif %}
{% if doc_commands %}

## Commands mentioned in the project documentation

These were not used to configure the environment.

{% for command in doc_commands %}
- `{{ command }}`
{% endfor %}
{% endif %}

## Caches

Dependency caches live under `.cache/` and are bind-mounted into every
container. They are created on first use and never deleted automatically.
{% for mount in cache_dirs %}
- `{{ mount.host_path }}` -> `{{ mount.container_path }}`
{% endfor %}

## Known limitations

- Running several `{{ script_name }}` commands or synthesis runs against this
  directory at the same time is not supported.
- GUI and display forwarding is not configured. To enable X11 applications,
  add `-e DISPLAY -v /tmp/.X11-unix:/tmp/.X11-unix` to the flags in
  `in_container` in `{{ script_name }}` and allow local connections on the host
  (for example `xhost +local:`).
"""

GITIGNORE_TEMPLATE = """\
/{{ project_dir }}/
/.cache/
"""
