#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/commands.py — Catálogo de comandos gerados em prefix/bin

Três famílias:
- wrappers "fire-and-collect": sinalizam o receptor via `am broadcast`,
  esperam um intervalo fixo e imprimem (e apagam) o arquivo de resultado
- wrappers com parsing de opções (getopts) que montam api_args
- utilitários com estado (abrir URL, storage, backup, mirrors...)

Os templates usam marcadores @TOKEN@ substituídos com str.replace, porque
o texto bash é cheio de $ e chaves.
"""

from __future__ import annotations

import os
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from rootstrap.modules import log, utils
from rootstrap.modules.layout import SandboxLayout

logger = log.get_logger("commands")

API_MARKER = "# rootstrap API:"
UTIL_MARKER = "# rootstrap:"
SENTINEL_SCRIPT = "termux-battery-status"
SCRIPT_MODE = 0o755

DEFAULT_RECEIVER = "com.termux/com.termux.TermuxApiReceiver"
DEFAULT_ACTION = "com.termux.api.API_CALL"
DEFAULT_WAIT = "0.3"

URL_SCHEMES = "http://*|https://*|mailto:*|tel:*|sms:*|geo:*"


class GeneratedScript(NamedTuple):
    name: str
    content: str
    only_if_absent: bool = False


class Opt(NamedTuple):
    """Opção getopts. var=None aceita e ignora; value fixa o valor (opção sem argumento)."""
    flag: str
    var: Optional[str] = None
    value: Optional[str] = None


class ApiCommand(NamedTuple):
    name: str
    method: str
    args: str = '"$@"'
    wait: str = DEFAULT_WAIT
    fallback: Optional[str] = None


class OptionCommand(NamedTuple):
    name: str
    method: str
    args: str
    options: Tuple[Opt, ...] = ()
    defaults: Tuple[Tuple[str, str], ...] = ()
    positional: Tuple[str, ...] = ()
    rest: Optional[str] = None
    required: Tuple[str, ...] = ()
    usage: Optional[str] = None
    wait: str = DEFAULT_WAIT


# ---------------------------
# Templates
# ---------------------------
FIRE = """\
RESULT_FILE="@TMP@/api_result_$$"
am broadcast -n @RECEIVER@ -a @ACTION@ \\
    --es api_method "@METHOD@" \\
    --es api_args @ARGS@ \\
    --es result_file "$RESULT_FILE" \\
    > /dev/null 2>&1
sleep @WAIT@
if [ -f "$RESULT_FILE" ]; then
    cat "$RESULT_FILE"
    rm -f "$RESULT_FILE"
@FALLBACK@fi
"""

ACTIVITY_MANAGER = """\
#!@PREFIX@/bin/sh
# rootstrap: am
# Activity manager via arquivos de requisição/resultado

ROOTSTRAP_AM_VERSION=0.9.0-rootstrap

if [ "$1" = "--version" ]; then
    echo "$ROOTSTRAP_AM_VERSION"
    exit 0
fi

STATE_DIR="$HOME/.termux"
CMD_FILE="$STATE_DIR/am_command"
RESULT_FILE="$STATE_DIR/am_result"
URL_FILE="$STATE_DIR/url_to_open"

mkdir -p "$STATE_DIR"

# VIEW com URL: só grava a URL, quem abre é o app em primeiro plano
if [ "$1" = "start" ]; then
    IS_VIEW=0
    DATA=""
    for arg in "$@"; do
        case "$arg" in
            android.intent.action.VIEW) IS_VIEW=1 ;;
        esac
    done
    ARGS="$*"
    case "$ARGS" in
        *-d\\ *)
            DATA="$(echo "$ARGS" | sed -n 's/.*-d \\([^ ]*\\).*/\\1/p')"
            ;;
    esac
    if [ "$IS_VIEW" = "1" ] && [ -n "$DATA" ]; then
        echo "$DATA" > "$URL_FILE"
        echo "Starting: Intent { act=android.intent.action.VIEW dat=$DATA }"
        exit 0
    fi
fi

rm -f "$RESULT_FILE"
echo "$@" > "$CMD_FILE"

# Até @AM_TICKS@ x 0.1s
WAIT=0
while [ ! -f "$RESULT_FILE" ] && [ "$WAIT" -lt @AM_TICKS@ ]; do
    sleep 0.1
    WAIT=$((WAIT + 1))
done

if [ -f "$RESULT_FILE" ]; then
    # 1a linha: código de saída; resto: saída
    EXIT_CODE="$(head -1 "$RESULT_FILE")"
    tail -n +2 "$RESULT_FILE"
    rm -f "$RESULT_FILE"
    exit "${EXIT_CODE:-0}"
else
    echo "Error: command timed out (receiver may not be running)" >&2
    exit 1
fi
"""

KEYSTORE = """\
#!@PREFIX@/bin/bash
# rootstrap API: termux-keystore
# Uso: termux-keystore <list|generate|delete|sign|verify> [args]

fire() {
    RESULT_FILE="@TMP@/api_result_$$"
    am broadcast -n @RECEIVER@ -a @ACTION@ \\
        --es api_method "$1" \\
        --es api_args "$2" \\
        --es result_file "$RESULT_FILE" \\
        > /dev/null 2>&1
    sleep 0.3
    if [ -f "$RESULT_FILE" ]; then
        cat "$RESULT_FILE"
        rm -f "$RESULT_FILE"
    fi
}

COMMAND="$1"
shift

case "$COMMAND" in
    list)
        fire keystore-list ""
        ;;
    generate)
        ALIAS=""
        ALGORITHM="RSA"
        SIZE="2048"
        while getopts "a:g:s:" opt; do
            case $opt in
                a) ALIAS="$OPTARG" ;;
                g) ALGORITHM="$OPTARG" ;;
                s) SIZE="$OPTARG" ;;
            esac
        done
        if [ -z "$ALIAS" ]; then
            echo "Usage: termux-keystore generate -a <alias> [-g algorithm] [-s size]"
            exit 1
        fi
        fire keystore-generate "$ALIAS|$ALGORITHM|$SIZE"
        ;;
    delete)
        ALIAS="$1"
        if [ -z "$ALIAS" ]; then
            echo "Usage: termux-keystore delete <alias>"
            exit 1
        fi
        fire keystore-delete "$ALIAS"
        ;;
    sign)
        ALIAS=""
        DATA=""
        while getopts "a:d:" opt; do
            case $opt in
                a) ALIAS="$OPTARG" ;;
                d) DATA="$OPTARG" ;;
            esac
        done
        if [ -z "$ALIAS" ] || [ -z "$DATA" ]; then
            echo "Usage: termux-keystore sign -a <alias> -d <data>"
            exit 1
        fi
        fire keystore-sign "$ALIAS|$DATA"
        ;;
    verify)
        ALIAS=""
        SIGNATURE=""
        IV=""
        while getopts "a:s:i:" opt; do
            case $opt in
                a) ALIAS="$OPTARG" ;;
                s) SIGNATURE="$OPTARG" ;;
                i) IV="$OPTARG" ;;
            esac
        done
        if [ -z "$ALIAS" ] || [ -z "$SIGNATURE" ]; then
            echo "Usage: termux-keystore verify -a <alias> -s <signature> -i <iv>"
            exit 1
        fi
        fire keystore-verify "$ALIAS|$SIGNATURE|$IV"
        ;;
    *)
        echo "Usage: termux-keystore <command> [args]"
        echo "Commands: list, generate, delete, sign, verify"
        exit 1
        ;;
esac
"""

OPEN_URL = """\
#!@PREFIX@/bin/sh
# rootstrap: termux-open-url
if [ $# -lt 1 ]; then
    echo 'usage: termux-open-url <url>'
    echo 'Open a URL in browser.'
    exit 1
fi
mkdir -p "$HOME/.termux"
echo "$1" > "$HOME/.termux/url_to_open"
echo "Opening: $1"
sleep 1
"""

TERMUX_OPEN = """\
#!@PREFIX@/bin/sh
# rootstrap: termux-open
set -e -u

SCRIPTNAME=termux-open
show_usage () {
    echo "Usage: $SCRIPTNAME [options] path-or-url"
    echo "Open a file or URL in an external app."
    echo "  --send               if the file should be shared for sending"
    echo "  --view               if the file should be shared for viewing (default)"
    echo "  --chooser            if an app chooser should always be shown"
    echo "  --content-type type  specify the content type to use"
    exit 0
}

ACTION=android.intent.action.VIEW
EXTRAS=""
while [ $# -gt 0 ]; do
    case "$1" in
        --send) ACTION="android.intent.action.SEND"; shift;;
        --view) ACTION="android.intent.action.VIEW"; shift;;
        --chooser) EXTRAS="$EXTRAS --ez chooser true"; shift;;
        --content-type) EXTRAS="$EXTRAS --es content-type $2"; shift 2;;
        -h|--help) show_usage;;
        --) shift; break;;
        *) break;;
    esac
done
if [ $# != 1 ]; then
    show_usage
fi

TARGET="$1"
case "$TARGET" in
    @URL_SCHEMES@)
        mkdir -p "$HOME/.termux"
        echo "$TARGET" > "$HOME/.termux/url_to_open"
        sleep 1
        exit 0
        ;;
esac

if [ -f "$TARGET" ]; then
    TARGET=$(realpath "$TARGET")
fi

case "${TERMUX__USER_ID:-}" in ''|*[!0-9]*|0[0-9]*) TERMUX__USER_ID=0;; esac

am broadcast --user "$TERMUX__USER_ID" \\
    -a "$ACTION" \\
    -n "com.termux/com.termux.app.TermuxOpenReceiver" \\
    $EXTRAS \\
    -d "$TARGET" \\
    > /dev/null 2>&1
"""

URL_OR_OPEN = """\
#!@PREFIX@/bin/sh
# rootstrap: @NAME@
URL="$1"
case "$URL" in
    @URL_SCHEMES@)
        mkdir -p "@HOME@/.termux"
        echo "$URL" > "@HOME@/.termux/url_to_open"
        ;;
    *)
        exec termux-open "$@"
        ;;
esac
"""

SENSIBLE_BROWSER = """\
#!@PREFIX@/bin/sh
# rootstrap: sensible-browser
mkdir -p "@HOME@/.termux"
echo "$1" > "@HOME@/.termux/url_to_open"
"""

SETUP_STORAGE = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-setup-storage
STORAGE_DIR="@HOME@/storage"
mkdir -p "$STORAGE_DIR"
ln -sf /sdcard "$STORAGE_DIR/shared"
ln -sf /sdcard/DCIM "$STORAGE_DIR/dcim"
ln -sf /sdcard/Download "$STORAGE_DIR/downloads"
ln -sf /sdcard/Pictures "$STORAGE_DIR/pictures"
ln -sf /sdcard/Music "$STORAGE_DIR/music"
ln -sf /sdcard/Movies "$STORAGE_DIR/movies"
echo "Storage setup complete. Access via ~/storage/"
"""

RELOAD_SETTINGS = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-reload-settings
echo "Settings reloaded"
"""

INFO = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-info
echo "rootstrap"
echo "========="
echo "HOME: $HOME"
echo "PREFIX: $PREFIX"
echo "Android: $(getprop ro.build.version.release 2>/dev/null)"
echo "Device: $(getprop ro.product.model 2>/dev/null)"
"""

MIRRORS = (
    ("Default (packages.termux.dev)", "https://packages.termux.dev/apt/termux-main"),
    ("Grimler (grimler.se)", "https://grimler.se/termux/termux-main"),
    ("A1Batross (a1batross.github.io)", "https://a1batross.github.io/termux-main"),
    ("BFSU China (mirrors.bfsu.edu.cn)", "https://mirrors.bfsu.edu.cn/termux/apt/termux-main"),
    ("Tsinghua China (mirrors.tuna.tsinghua.edu.cn)", "https://mirrors.tuna.tsinghua.edu.cn/termux/apt/termux-main"),
    ("USTC China (mirrors.ustc.edu.cn)", "https://mirrors.ustc.edu.cn/termux/apt/termux-main"),
)

CHANGE_REPO = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-change-repo
echo "Package repository selector"
echo "==========================="
echo ""
echo "Available mirrors:"
@MIRROR_MENU@
echo ""

read -p "Select mirror [1-@MIRROR_COUNT@]: " choice

case "$choice" in
@MIRROR_CASES@
    *)
        echo "Invalid selection"
        exit 1
        ;;
esac

echo ""
echo "Setting mirror to: $MIRROR"
mkdir -p "$PREFIX/etc/apt"
echo "deb $MIRROR stable main" > "$PREFIX/etc/apt/sources.list"
echo "Done! Run 'pkg update' to refresh package lists."
"""

SHEBANG_INTERPRETERS = ("bash", "sh", "env ", "python", "perl", "ruby", "node")

FIX_SHEBANG = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-fix-shebang
if [ $# -lt 1 ]; then
    echo "Usage: termux-fix-shebang <file> [file2] ..."
    echo "Fix script shebangs to use the prefix paths"
    exit 1
fi

for file in "$@"; do
    if [ ! -f "$file" ]; then
        echo "File not found: $file"
        continue
    fi
@SED_LINES@
    echo "Fixed: $file"
done
"""

RESET = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-reset
# Volta ao estado limpo (home preservado)
echo "WARNING: This will remove all installed packages!"
echo "Your home directory files will be preserved."
echo ""

read -p "Are you sure? (yes/no): " confirm
if [ "$confirm" != "yes" ]; then
    echo "Cancelled."
    exit 0
fi

echo "Removing installed packages..."
pkg list-installed 2>/dev/null | while read pkg; do
    name=$(echo "$pkg" | cut -d/ -f1)
    case "$name" in
        apt|bash|coreutils|dash|dpkg|findutils|gawk|grep|gzip|less|libandroid*|libc*|ncurses*|readline|sed|tar|termux*)
            ;;
        *)
            pkg uninstall -y "$name" 2>/dev/null
            ;;
    esac
done

echo "Clearing package cache..."
apt clean
echo "Reset complete. Run 'pkg update && pkg upgrade' to refresh."
"""

BACKUP = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-backup
OUTPUT="$1"
if [ -z "$OUTPUT" ]; then
    TIMESTAMP=$(date +%Y%m%d_%H%M%S)
    OUTPUT="/sdcard/Download/termux-backup-$TIMESTAMP.tar.gz"
fi

echo "Backing up home directory to: $OUTPUT"
cd "$HOME" || exit 1

tar -czf "$OUTPUT" \\
    --exclude='node_modules' \\
    --exclude='.npm' \\
    --exclude='.cache' \\
    --exclude='.gradle' \\
    --exclude='*.apk' \\
    .

if [ $? -eq 0 ]; then
    SIZE=$(ls -lh "$OUTPUT" | awk '{print $5}')
    echo "Backup complete!"
    echo "File: $OUTPUT"
    echo "Size: $SIZE"
else
    echo "Backup failed!"
    exit 1
fi
"""

RESTORE = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-restore
INPUT="$1"
if [ -z "$INPUT" ]; then
    echo "Usage: termux-restore <backup-file.tar.gz>"
    echo ""
    echo "Available backups in /sdcard/Download/:"
    ls -lh /sdcard/Download/termux-backup-*.tar.gz 2>/dev/null || echo "  (none found)"
    exit 1
fi
if [ ! -f "$INPUT" ]; then
    echo "File not found: $INPUT"
    exit 1
fi

echo "WARNING: This will overwrite existing files in your home directory!"
echo "Backup file: $INPUT"
read -p "Are you sure? (yes/no): " confirm
if [ "$confirm" != "yes" ]; then
    echo "Cancelled."
    exit 0
fi

cd "$HOME" || exit 1
echo "Restoring..."
tar -xzf "$INPUT"

if [ $? -eq 0 ]; then
    echo "Restore complete!"
else
    echo "Restore failed!"
    exit 1
fi
"""

FILE_EDITOR = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-file-editor
if [ $# -lt 1 ]; then
    echo "Usage: termux-file-editor <file>"
    exit 1
fi
FILE="$1"
if [ ! -f "$FILE" ]; then
    echo "File not found: $FILE"
    exit 1
fi
ABSPATH=$(realpath "$FILE")
am start -a android.intent.action.EDIT -d "file://$ABSPATH" -t "text/plain"
"""

URL_OPENER = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-url-opener
URL="$1"
if [ -x "$HOME/.termux/termux-url-opener" ]; then
    exec "$HOME/.termux/termux-url-opener" "$URL"
fi
echo "URL received: $URL"
echo ""
echo "To customize URL handling, create ~/.termux/termux-url-opener"
"""

FILE_OPENER = """\
#!@PREFIX@/bin/bash
# rootstrap: termux-file-opener
FILE="$1"
if [ -x "$HOME/.termux/termux-file-opener" ]; then
    exec "$HOME/.termux/termux-file-opener" "$FILE"
fi
if [ -f "$FILE" ]; then
    echo "File received: $FILE"
    ls -la "$FILE"
    file "$FILE" 2>/dev/null
else
    echo "File not found: $FILE"
fi
echo ""
echo "To customize file handling, create ~/.termux/termux-file-opener"
"""

PKG_CONFIG = """\
#!@PREFIX@/bin/bash
# rootstrap: pkg-config
if [ -x @PREFIX@/bin/pkgconf ]; then
    exec @PREFIX@/bin/pkgconf "$@"
else
    echo "pkg-config not found. Install with: pkg install pkg-config" >&2
    exit 1
fi
"""

SETUP_GITHUB = """\
#!@PREFIX@/bin/sh
# rootstrap: setup-github
# Uso: setup-github TOKEN [usuario]
if [ -z "$1" ]; then
    echo "Usage: setup-github YOUR_GITHUB_TOKEN [user]"
    echo "Get a token from: https://github.com/settings/tokens"
    echo "Required scopes: repo, workflow"
    exit 1
fi

mkdir -p ~/.config/gh
cat > ~/.config/gh/hosts.yml << EOF
github.com:
    user: ${2:-$USER}
    oauth_token: $1
    git_protocol: https
EOF

echo "GitHub configured! Try: gh repo list"
"""

SAF_MANAGEDIR = """\
#!@PREFIX@/bin/bash
# rootstrap API: termux-saf-managedir
echo "Opening directory picker..."
echo "After selecting a directory, the URI will be available for other saf-* commands."
am start -a android.intent.action.OPEN_DOCUMENT_TREE
"""


# ---------------------------
# Tabelas
# ---------------------------
API_COMMANDS: Tuple[ApiCommand, ...] = (
    # clipboard
    ApiCommand("termux-clipboard-get", "clipboard-get", '""'),
    ApiCommand("termux-clipboard-set", "clipboard-set", '"$*"'),
    # notificações
    ApiCommand("termux-toast", "toast", '"$*"'),
    ApiCommand("termux-notification-remove", "notification-remove", '"$1"'),
    ApiCommand("termux-notification-list", "notification-list", '""'),
    # dispositivo
    ApiCommand("termux-battery-status", "battery-status", '""'),
    ApiCommand("termux-vibrate", "vibrate", '"${1:-1000}"'),
    ApiCommand("termux-brightness", "brightness", '""'),
    ApiCommand("termux-torch", "torch", '"${1:-on}"'),
    ApiCommand("termux-volume", "volume", '""'),
    ApiCommand("termux-audio-info", "audio-info", '""'),
    # rede
    ApiCommand("termux-wifi-connectioninfo", "wifi-connectioninfo", '""'),
    ApiCommand("termux-wifi-enable", "wifi-enable", '"$1"'),
    ApiCommand("termux-wifi-scaninfo", "wifi-scaninfo", '""'),
    ApiCommand("termux-location", "location", '""'),
    # câmera e mídia
    ApiCommand("termux-camera-info", "camera-info", '""'),
    ApiCommand("termux-media-scan", "media-scan", '"$1"'),
    ApiCommand("termux-tts-engines", "tts-engines", '""'),
    ApiCommand("termux-tts-speak", "tts-speak", '"$*"'),
    ApiCommand("termux-speech-to-text", "speech-to-text", '""'),
    # telefonia
    ApiCommand("termux-telephony-call", "telephony-call", '"$1"'),
    ApiCommand("termux-telephony-cellinfo", "telephony-cellinfo", '""'),
    ApiCommand("termux-telephony-deviceinfo", "telephony-deviceinfo", '""'),
    ApiCommand("termux-contact-list", "contact-list", '""'),
    # hardware
    ApiCommand("termux-fingerprint", "fingerprint", '""'),
    ApiCommand("termux-infrared-frequencies", "infrared-frequencies", '""'),
    ApiCommand("termux-usb", "usb", '""'),
    ApiCommand("termux-nfc", "nfc", '""'),
    # sistema
    ApiCommand("termux-wallpaper", "wallpaper", '"$1"'),
    ApiCommand("termux-storage-get", "storage-get", '"$1"'),
    ApiCommand("termux-job-scheduler", "job-scheduler", '"$*"'),
    ApiCommand("termux-wake-lock", "wake-lock", '"acquire"', "0.2", "Wake lock acquired"),
    ApiCommand("termux-wake-unlock", "wake-lock", '"release"', "0.2", "Wake lock released"),
    # bluetooth
    ApiCommand("termux-bluetooth-info", "bluetooth-info", '""'),
    ApiCommand("termux-bluetooth-enable", "bluetooth-enable", '"${1:-on}"'),
    ApiCommand("termux-bluetooth-scaninfo", "bluetooth-scaninfo", '""'),
    ApiCommand("termux-bluetooth-paired", "bluetooth-paired", '""'),
    # keystore / SAF
    ApiCommand("termux-keystore-list", "keystore-list", '""'),
    ApiCommand("termux-saf-dirs", "saf-dirs", '""'),
)

OPTION_COMMANDS: Tuple[OptionCommand, ...] = (
    OptionCommand(
        "termux-notification", "notification", '"$TITLE|$CONTENT|$ID"',
        options=(Opt("t", "TITLE"), Opt("c", "CONTENT"), Opt("i", "ID")),
        defaults=(("TITLE", "rootstrap"),), wait="0.2",
    ),
    OptionCommand(
        "termux-camera-photo", "camera-photo", '"$CAMERA_ID|$OUTPUT_FILE"',
        options=(Opt("c", "CAMERA_ID"), Opt("o", "OUTPUT_FILE")),
        defaults=(("CAMERA_ID", "0"),), required=("OUTPUT_FILE",),
        usage="termux-camera-photo -o <output_file> [-c camera_id]", wait="0.5",
    ),
    OptionCommand(
        "termux-media-player", "media-player", '"$ACTION|$FILE"',
        positional=("ACTION", "FILE"),
    ),
    OptionCommand(
        "termux-microphone-record", "microphone-record", '"$ACTION|$FILE|$LIMIT"',
        options=(Opt("d"), Opt("f", "FILE"), Opt("l", "LIMIT"), Opt("q", "ACTION", "stop")),
        defaults=(("ACTION", "start"),),
    ),
    OptionCommand(
        "termux-sms-list", "sms-list", '"$TYPE|$LIMIT"',
        options=(Opt("t", "TYPE"), Opt("l", "LIMIT"), Opt("o"), Opt("n", "LIMIT")),
        defaults=(("TYPE", "inbox"), ("LIMIT", "10")),
    ),
    OptionCommand(
        "termux-sms-send", "sms-send", '"$NUMBER|$MESSAGE"',
        options=(Opt("n", "NUMBER"),), rest="MESSAGE", required=("NUMBER", "MESSAGE"),
        usage="termux-sms-send -n <number> <message>",
    ),
    OptionCommand(
        "termux-call-log", "call-log", '"$LIMIT"',
        options=(Opt("l", "LIMIT"), Opt("n", "LIMIT"), Opt("o")),
        defaults=(("LIMIT", "10"),),
    ),
    OptionCommand(
        "termux-sensor", "sensor", '"${LIST_SENSORS:-$SENSOR_TYPE}"',
        options=(Opt("s", "SENSOR_TYPE"), Opt("l", "LIST_SENSORS", "list"),
                 Opt("n"), Opt("d"), Opt("c")),
    ),
    OptionCommand(
        "termux-infrared-transmit", "infrared-transmit", '"$FREQ,$PATTERN"',
        options=(Opt("f", "FREQ"),), rest="PATTERN", required=("FREQ", "PATTERN"),
        usage="termux-infrared-transmit -f <frequency> <pattern...>",
    ),
    OptionCommand(
        "termux-download", "download", '"$URL|$TITLE|$DESC"',
        options=(Opt("t", "TITLE"), Opt("d", "DESC")), rest="URL", required=("URL",),
        usage="termux-download [-t title] [-d description] <url>",
    ),
    OptionCommand(
        "termux-share", "share", '"$ACTION|$CONTENT"',
        options=(Opt("a", "ACTION"),), defaults=(("ACTION", "send"),), rest="CONTENT",
    ),
    OptionCommand(
        "termux-dialog", "dialog", '"$TITLE|$HINT"',
        options=(Opt("t", "TITLE"), Opt("i", "HINT")),
        defaults=(("TITLE", "Input"),), wait="0.5",
    ),
    OptionCommand(
        "termux-bluetooth-connect", "bluetooth-connect", '"$MAC"',
        positional=("MAC",), required=("MAC",),
        usage="termux-bluetooth-connect <mac_address>", wait="0.5",
    ),
    OptionCommand(
        "termux-saf-ls", "saf-ls", '"$URI"',
        positional=("URI",), required=("URI",), usage="termux-saf-ls <document_uri>",
    ),
    OptionCommand(
        "termux-saf-stat", "saf-stat", '"$URI"',
        positional=("URI",), required=("URI",), usage="termux-saf-stat <document_uri>",
    ),
    OptionCommand(
        "termux-saf-read", "saf-read", '"$URI"',
        positional=("URI",), required=("URI",), usage="termux-saf-read <document_uri>",
    ),
    OptionCommand(
        "termux-saf-write", "saf-write", '"$URI|$CONTENT"',
        positional=("URI",), rest="CONTENT", required=("URI",),
        usage="termux-saf-write <document_uri> [content]",
    ),
    OptionCommand(
        "termux-saf-mkdir", "saf-mkdir", '"$PARENT|$NAME"',
        positional=("PARENT", "NAME"), required=("PARENT", "NAME"),
        usage="termux-saf-mkdir <parent_uri> <directory_name>",
    ),
    OptionCommand(
        "termux-saf-rm", "saf-rm", '"$URI"',
        positional=("URI",), required=("URI",), usage="termux-saf-rm <document_uri>",
    ),
    OptionCommand(
        "termux-saf-create", "saf-create", '"$PARENT|$NAME|$MIME"',
        options=(Opt("m", "MIME"),), defaults=(("MIME", "application/octet-stream"),),
        positional=("PARENT", "NAME"), required=("PARENT", "NAME"),
        usage="termux-saf-create [-m mime_type] <parent_uri> <file_name>",
    ),
)

UTILITIES: Tuple[Tuple[str, str], ...] = (
    ("termux-keystore", KEYSTORE),
    ("termux-saf-managedir", SAF_MANAGEDIR),
    ("termux-open-url", OPEN_URL),
    ("termux-open", TERMUX_OPEN),
    ("xdg-open", URL_OR_OPEN),
    ("open", URL_OR_OPEN),
    ("sensible-browser", SENSIBLE_BROWSER),
    ("termux-setup-storage", SETUP_STORAGE),
    ("termux-reload-settings", RELOAD_SETTINGS),
    ("termux-info", INFO),
    ("termux-change-repo", CHANGE_REPO),
    ("termux-fix-shebang", FIX_SHEBANG),
    ("termux-reset", RESET),
    ("termux-backup", BACKUP),
    ("termux-restore", RESTORE),
    ("termux-file-editor", FILE_EDITOR),
    ("termux-url-opener", URL_OPENER),
    ("termux-file-opener", FILE_OPENER),
    ("setup-github", SETUP_GITHUB),
)

ONLY_IF_ABSENT: Tuple[Tuple[str, str], ...] = (
    ("pkg-config", PKG_CONFIG),
)


# ---------------------------
# Renderização
# ---------------------------
def _render(template: str, tokens: Dict[str, str]) -> str:
    for key, value in tokens.items():
        template = template.replace(f"@{key}@", value)
    return template


def _fire(method: str, args: str, wait: str, fallback: Optional[str] = None) -> str:
    tail = f'else\n    echo "{fallback}"\n' if fallback else ""
    return _render(FIRE, {"METHOD": method, "ARGS": args, "WAIT": wait, "FALLBACK": tail})


def _header(name: str) -> str:
    return f"#!@PREFIX@/bin/bash\n{API_MARKER} {name}\n"


def render_api(cmd: ApiCommand) -> str:
    return _header(cmd.name) + _fire(cmd.method, cmd.args, cmd.wait, cmd.fallback)


def _option_prelude(cmd: OptionCommand) -> List[str]:
    lines: List[str] = []
    declared: List[str] = []
    for var, default in cmd.defaults:
        lines.append(f'{var}="{default}"')
        declared.append(var)
    for opt in cmd.options:
        if opt.var and opt.var not in declared:
            lines.append(f'{opt.var}=""')
            declared.append(opt.var)

    if cmd.options:
        optstring = "".join(o.flag + ("" if o.value is not None else ":") for o in cmd.options)
        lines.append(f'while getopts "{optstring}" opt; do')
        lines.append("    case $opt in")
        for opt in cmd.options:
            if opt.var is None:
                lines.append(f"        {opt.flag}) ;;")
            elif opt.value is not None:
                lines.append(f'        {opt.flag}) {opt.var}="{opt.value}" ;;')
            else:
                lines.append(f'        {opt.flag}) {opt.var}="$OPTARG" ;;')
        lines.append("    esac")
        lines.append("done")
        lines.append("shift $((OPTIND - 1))")

    for idx, var in enumerate(cmd.positional, start=1):
        lines.append(f'{var}="${{{idx}:-}}"')
    if cmd.rest:
        n = len(cmd.positional)
        if n:
            lines.append(f"shift $(( $# < {n} ? $# : {n} ))")
        lines.append(f'{cmd.rest}="$*"')

    if cmd.required:
        test = " || ".join(f'[ -z "${var}" ]' for var in cmd.required)
        lines.append(f"if {test}; then")
        lines.append(f'    echo "Usage: {cmd.usage or cmd.name}"')
        lines.append("    exit 1")
        lines.append("fi")
    return lines


def render_option(cmd: OptionCommand) -> str:
    prelude = "\n".join(_option_prelude(cmd))
    return _header(cmd.name) + prelude + "\n" + _fire(cmd.method, cmd.args, cmd.wait)


def _mirror_tokens() -> Dict[str, str]:
    menu = "\n".join(f'echo "{i}) {label}"' for i, (label, _) in enumerate(MIRRORS, start=1))
    cases = "\n".join(
        f'    {i})\n        MIRROR="{url}"\n        ;;' for i, (_, url) in enumerate(MIRRORS, start=1)
    )
    return {"MIRROR_MENU": menu, "MIRROR_CASES": cases, "MIRROR_COUNT": str(len(MIRRORS))}


def _shebang_tokens() -> Dict[str, str]:
    lines = []
    for interp in SHEBANG_INTERPRETERS:
        for base in ("/bin/", "/usr/bin/"):
            lines.append(f"    sed -i 's|#!{base}{interp}|#!@PREFIX@/bin/{interp}|g' \"$file\"")
    return {"SED_LINES": "\n".join(lines)}


def _tokens(layout: SandboxLayout, receiver: str, action: str) -> Dict[str, str]:
    tokens = {
        "URL_SCHEMES": URL_SCHEMES,
        "TMP": layout.tmp_dir,
        "RECEIVER": receiver,
        "ACTION": action,
        "AM_TICKS": "30",
    }
    tokens.update(_mirror_tokens())
    tokens.update(_shebang_tokens())
    # PREFIX/HOME por último: outros tokens podem expandir para @PREFIX@
    tokens["PREFIX"] = layout.prefix
    tokens["HOME"] = layout.home
    return tokens


def build_catalog(layout: SandboxLayout,
                  receiver: str = DEFAULT_RECEIVER,
                  action: str = DEFAULT_ACTION) -> List[GeneratedScript]:
    """Catálogo completo; mesma entrada produz exatamente o mesmo conteúdo."""
    tokens = _tokens(layout, receiver, action)
    catalog: List[GeneratedScript] = []

    for cmd in API_COMMANDS:
        catalog.append(GeneratedScript(cmd.name, _render(render_api(cmd), tokens)))
    for cmd in OPTION_COMMANDS:
        catalog.append(GeneratedScript(cmd.name, _render(render_option(cmd), tokens)))
    for name, template in UTILITIES:
        catalog.append(GeneratedScript(name, _render(template, dict(tokens, NAME=name))))
    for name, template in ONLY_IF_ABSENT:
        catalog.append(GeneratedScript(name, _render(template, tokens), only_if_absent=True))
    return catalog


def script_names() -> List[str]:
    names = [c.name for c in API_COMMANDS] + [c.name for c in OPTION_COMMANDS]
    names += [n for n, _ in UTILITIES] + [n for n, _ in ONLY_IF_ABSENT]
    return names


# ---------------------------
# Instalação
# ---------------------------
def write_script(layout: SandboxLayout, script: GeneratedScript) -> bool:
    path = layout.bin(script.name)
    if script.only_if_absent and os.path.lexists(path):
        logger.debug("%s já existe, mantido", script.name)
        return False
    if os.path.islink(path):
        os.remove(path)
    utils.write_text(path, script.content, mode=SCRIPT_MODE)
    return True


def install_api_scripts(layout: SandboxLayout,
                        receiver: str = DEFAULT_RECEIVER,
                        action: str = DEFAULT_ACTION) -> List[GeneratedScript]:
    """Grava o catálogo em prefix/bin (0755). Retorna os scripts gravados."""
    utils.ensure_dir(layout.bin_dir)
    utils.ensure_dir(layout.tmp_dir)
    written = [s for s in build_catalog(layout, receiver, action) if write_script(layout, s)]
    logger.info("%d comandos gerados em %s", len(written), layout.bin_dir)
    return written


def install_activity_manager(layout: SandboxLayout, ticks: int = 30) -> str:
    """Wrapper `am` baseado em arquivos de requisição/resultado."""
    content = _render(ACTIVITY_MANAGER, {"AM_TICKS": str(ticks), "PREFIX": layout.prefix})
    path = layout.bin("am")
    if os.path.islink(path):
        os.remove(path)
    utils.write_text(path, content, mode=SCRIPT_MODE)
    logger.info("am instalado em %s", path)
    return path


def sentinel_path(layout: SandboxLayout) -> str:
    return layout.bin(SENTINEL_SCRIPT)


def has_marker(path: str, marker: str = API_MARKER) -> bool:
    content = utils.read_text(path)
    return content is not None and marker in content


def find_invalid(layout: SandboxLayout, names: Optional[Sequence[str]] = None) -> List[str]:
    """Scripts do catálogo ausentes ou sem linha de marcador."""
    missing = []
    for name in names or script_names():
        content = utils.read_text(layout.bin(name))
        if content is None or (API_MARKER not in content and UTIL_MARKER not in content):
            missing.append(name)
    return missing
