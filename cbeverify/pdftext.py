"""Minimal PDF text extraction: decodes page content and groups text into rows."""

from __future__ import annotations

import base64
import re
import zlib
from dataclasses import dataclass, field

__all__ = ["PdfError", "extract_rows"]

_SKIP = re.compile(rb"(?:[ \t\r\n\f\x00]|%[^\r\n]*)*")
_WORD = re.compile(rb"[^ \t\r\n\f\x00()<>\[\]{}/%]+")
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")
_ESC = dict(zip(b"nrtbf()\\", b"\n\r\t\b\f()\\"))
_IDENTITY = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


class PdfError(Exception):
    """Raised when a document cannot be read as a PDF."""


class _Name(str):
    pass


class _Op(str):
    pass


@dataclass(frozen=True)
class _Ref:
    num: int


@dataclass
class _Stream:
    attrs: dict
    raw: bytes


def _hex(digits: bytes) -> bytes:
    digits = re.sub(rb"\s", b"", digits)
    try:
        return bytes.fromhex((digits + b"0" * (len(digits) % 2)).decode("ascii"))
    except ValueError as exc:
        raise PdfError("malformed hex string") from exc


class _Reader:
    """Tokenizer and object parser over a byte buffer."""

    def __init__(self, data: bytes, pos: int = 0) -> None:
        self.data, self.pos, self._pushed = data, pos, []

    def skip_ws(self) -> int:
        self.pos = _SKIP.match(self.data, self.pos).end()
        return self.pos

    def token(self):
        if self._pushed:
            return self._pushed.pop()
        d = self.data
        i = self.skip_ws()
        if i >= len(d):
            return None
        c = d[i:i + 1]
        if c == b"(":
            return self._literal(i + 1)
        if d.startswith((b"<<", b">>"), i):
            self.pos = i + 2
            return _Op(d[i:i + 2].decode())
        if c == b"<":
            j = d.find(b">", i)
            if j < 0:
                raise PdfError("unterminated hex string")
            self.pos = j + 1
            return _hex(d[i + 1:j])
        if c in (b"[", b"]", b"{", b"}"):
            self.pos = i + 1
            return _Op(c.decode())
        if c == b"/":
            m = _WORD.match(d, i + 1)
            self.pos = m.end() if m else i + 1
            raw = re.sub(rb"#([0-9A-Fa-f]{2})", lambda h: bytes([int(h[1], 16)]),
                         m[0] if m else b"")
            return _Name(raw.decode("latin-1"))
        m = _WORD.match(d, i)
        if not m:
            raise PdfError(f"unexpected character {c!r}")
        self.pos = m.end()
        word = m[0].decode("latin-1")
        if _NUMBER.fullmatch(word):
            return float(word) if "." in word else int(word)
        return _Op(word)

    def _literal(self, i: int) -> bytes:
        d, n = self.data, len(self.data)
        out = bytearray()
        depth = 1
        while i < n:
            c = d[i]
            i += 1
            if c == 0x5C and i < n:
                e = d[i]
                i += 1
                if e in _ESC:
                    out.append(_ESC[e])
                elif 0x30 <= e <= 0x37:
                    end = i
                    while end < min(i + 2, n) and 0x30 <= d[end] <= 0x37:
                        end += 1
                    out.append(int(d[i - 1:end], 8) & 0xFF)
                    i = end
                elif e == 0x0D:
                    i += d[i:i + 1] == b"\n"
                elif e != 0x0A:
                    out.append(e)
                continue
            depth += (c == 0x28) - (c == 0x29)
            if depth == 0:
                self.pos = i
                return bytes(out)
            out.append(c)
        raise PdfError("unterminated string")

    def value(self):
        tok = self.token()
        if tok is None:
            raise PdfError("unexpected end of data")
        if isinstance(tok, _Op):
            if tok == "[":
                items = []
                while True:
                    nxt = self.token()
                    if nxt is None:
                        raise PdfError("unterminated array")
                    if isinstance(nxt, _Op) and nxt == "]":
                        return items
                    self._pushed.append(nxt)
                    items.append(self.value())
            if tok == "<<":
                result = {}
                while True:
                    key = self.token()
                    if isinstance(key, _Op) and key == ">>":
                        return result
                    if not isinstance(key, _Name):
                        raise PdfError("malformed dictionary")
                    result[str(key)] = self.value()
            return {"true": True, "false": False, "null": None}.get(tok, tok)
        if type(tok) is int:
            second = self.token()
            if type(second) is int:
                third = self.token()
                if isinstance(third, _Op) and third == "R":
                    return _Ref(tok)
                self._pushed.append(third)
            self._pushed.append(second)
        return tok


def _decode_stream(stream: _Stream) -> bytes:
    filters = stream.attrs.get("Filter") or []
    data = stream.raw
    for name in filters if isinstance(filters, list) else [filters]:
        if name in ("FlateDecode", "Fl"):
            try:
                data = zlib.decompressobj().decompress(data)
            except zlib.error as exc:
                raise PdfError("corrupt compressed stream") from exc
        elif name in ("ASCIIHexDecode", "AHx"):
            data = _hex(data.rstrip().rstrip(b">"))
        elif name in ("ASCII85Decode", "A85"):
            data = base64.a85decode(re.sub(rb"\s", b"", data).removesuffix(b"~>"))
        else:
            raise PdfError(f"unsupported stream filter {name}")
    return data


class _Document:
    def __init__(self, data: bytes) -> None:
        if not data.startswith(b"%PDF-"):
            raise PdfError("missing PDF header")
        self.data = data
        self.objects: dict[int, object] = {}
        for m in re.finditer(rb"(\d+)\s+\d+\s+obj\b", data):
            reader = _Reader(data, m.end())
            try:
                value = reader.value()
            except PdfError:
                continue
            if isinstance(value, dict):
                value = self._stream(value, reader) or value
            self.objects[int(m[1])] = value
        for obj in list(self.objects.values()):
            if isinstance(obj, _Stream) and obj.attrs.get("Type") == "ObjStm":
                self._load_object_stream(obj)

    def _stream(self, attrs: dict, reader: _Reader) -> _Stream | None:
        data = self.data
        start = reader.skip_ws()
        if not data.startswith(b"stream", start):
            return None
        start += len(b"stream")
        if data.startswith(b"\r\n", start):
            start += 2
        elif data[start:start + 1] in (b"\n", b"\r"):
            start += 1
        length = attrs.get("Length")
        if type(length) is int and data[start + length:start + length + 20].lstrip() \
                .startswith(b"endstream"):
            return _Stream(attrs, data[start:start + length])
        end = data.find(b"endstream", start)
        raw = data[start:end if end >= 0 else len(data)]
        return _Stream(attrs, re.sub(rb"(?:\r\n|\r|\n)\Z", b"", raw, count=1))

    def _load_object_stream(self, stream: _Stream) -> None:
        try:
            body = _decode_stream(stream)
            first = int(stream.attrs.get("First", 0))
            header = _Reader(body[:first])
            pairs = [(int(header.token()), int(header.token()))
                     for _ in range(int(stream.attrs.get("N", 0)))]
            for num, offset in pairs:
                if num not in self.objects:
                    self.objects[num] = _Reader(body, first + offset).value()
        except (PdfError, TypeError, ValueError):
            return

    def resolve(self, obj):
        seen = set()
        while isinstance(obj, _Ref):
            if obj.num in seen:
                return None
            seen.add(obj.num)
            obj = self.objects.get(obj.num)
        return obj

    def attrs(self, obj) -> dict:
        obj = self.resolve(obj)
        if isinstance(obj, _Stream):
            return obj.attrs
        return obj if isinstance(obj, dict) else {}

    def pages(self) -> list[tuple[dict, dict]]:
        roots = re.findall(rb"/Root\s+(\d+)\s+\d+\s+R", self.data)
        catalog = self.attrs(_Ref(int(roots[-1]))) if roots else {}
        if catalog.get("Type") != "Catalog":
            catalog = next((o for o in self.objects.values()
                            if isinstance(o, dict) and o.get("Type") == "Catalog"), {})
        found: list[tuple[dict, dict]] = []
        if catalog:
            self._walk(catalog.get("Pages"), {}, found, set())
        if not found:
            found = [(obj, self.attrs(obj.get("Resources")))
                     for _, obj in sorted(self.objects.items())
                     if isinstance(obj, dict) and obj.get("Type") == "Page"]
        if not found:
            raise PdfError("no pages found")
        return found

    def _walk(self, node, inherited: dict, found: list, seen: set) -> None:
        if isinstance(node, _Ref):
            if node.num in seen:
                return
            seen.add(node.num)
        attrs = self.attrs(node)
        resources = self.attrs(attrs.get("Resources")) or inherited
        if attrs.get("Type") == "Pages" or "Kids" in attrs:
            for kid in self.resolve(attrs.get("Kids")) or []:
                self._walk(kid, resources, found, seen)
        elif attrs:
            found.append((attrs, resources))

    def page_content(self, page: dict) -> bytes:
        contents = self.resolve(page.get("Contents"))
        if contents is None:
            return b""
        parts = (self.resolve(p) for p in (contents if isinstance(contents, list) else [contents]))
        return b"\n".join(_decode_stream(s) for s in parts if isinstance(s, _Stream))


@dataclass
class _FontDecoder:
    mapping: dict[bytes, str] = field(default_factory=dict)
    widths: list[int] = field(default_factory=list)

    def decode(self, raw: bytes) -> str:
        if not self.mapping:
            return raw.decode("latin-1")
        widths = self.widths or sorted({len(k) for k in self.mapping})
        out = []
        i = 0
        while i < len(raw):
            for width in widths:
                if raw[i:i + width] in self.mapping:
                    out.append(self.mapping[raw[i:i + width]])
                    i += width
                    break
            else:
                if widths[0] == 1:
                    out.append(raw[i:i + 1].decode("latin-1"))
                i += widths[0]
        return "".join(out)


def _utf16(raw: bytes) -> str:
    return raw.decode("utf-16-be", errors="replace")


def _parse_cmap(data: bytes) -> _FontDecoder:
    reader = _Reader(data)
    mapping: dict[bytes, str] = {}
    widths: set[int] = set()

    def section(size):
        while not isinstance(first := reader.value(), _Op):
            yield [first] + [reader.value() for _ in range(size - 1)]

    while True:
        tok = reader.value()
        if not isinstance(tok, _Op):
            continue
        if tok == "endcmap":
            break
        if tok == "begincodespacerange":
            widths.update(len(lo) for lo, _ in section(2))
        elif tok == "beginbfchar":
            for src, dst in section(2):
                if isinstance(src, bytes) and isinstance(dst, bytes):
                    mapping[src] = _utf16(dst)
        elif tok == "beginbfrange":
            for lo, hi, dst in section(3):
                if not (isinstance(lo, bytes) and isinstance(hi, bytes)):
                    continue
                codes = range(int.from_bytes(lo, "big"), int.from_bytes(hi, "big") + 1)
                for offset, code in enumerate(codes):
                    key = code.to_bytes(len(lo), "big")
                    if isinstance(dst, list):
                        if offset < len(dst) and isinstance(dst[offset], bytes):
                            mapping[key] = _utf16(dst[offset])
                    elif isinstance(dst, bytes) and dst:
                        value = int.from_bytes(dst, "big") + offset
                        mapping[key] = _utf16(value.to_bytes(len(dst), "big"))
    return _FontDecoder(mapping, sorted(widths or {len(k) for k in mapping}))


def _load_fonts(doc: _Document, resources: dict) -> dict[str, _FontDecoder]:
    fonts = {}
    for name, ref in doc.attrs(resources.get("Font")).items():
        cmap = doc.resolve(doc.attrs(ref).get("ToUnicode"))
        fonts[name] = _FontDecoder()
        if isinstance(cmap, _Stream):
            try:
                fonts[name] = _parse_cmap(_decode_stream(cmap))
            except PdfError:
                pass
    return fonts


def _mul(a, b):
    return (
        a[0] * b[0] + a[1] * b[2],
        a[0] * b[1] + a[1] * b[3],
        a[2] * b[0] + a[3] * b[2],
        a[2] * b[1] + a[3] * b[3],
        a[4] * b[0] + a[5] * b[2] + b[4],
        a[4] * b[1] + a[5] * b[3] + b[5],
    )


def _numbers(operands, count):
    values = operands[-count:]
    if len(values) < count or not all(type(v) in (int, float) for v in values):
        return None
    return [float(v) for v in values]


def _page_fragments(content: bytes, fonts: dict[str, _FontDecoder]):
    reader = _Reader(content)
    fragments: list[tuple[float, float, int, str]] = []
    ctm = tm = tlm = _IDENTITY
    saved: list[tuple] = []
    leading = 0.0
    font = _FontDecoder()
    operands: list = []

    def move(tx, ty):
        nonlocal tm, tlm
        tm = tlm = _mul((1.0, 0.0, 0.0, 1.0, tx, ty), tlm)

    def show(text: str):
        if text:
            trm = _mul(tm, ctm)
            fragments.append((trm[5], trm[4], len(fragments), text))

    while True:
        try:
            tok = reader.value()
        except PdfError:
            break
        if not isinstance(tok, _Op):
            operands.append(tok)
            continue
        last = operands[-1] if operands else None
        if tok == "BT":
            tm = tlm = _IDENTITY
        elif tok == "q":
            saved.append(ctm)
        elif tok == "Q" and saved:
            ctm = saved.pop()
        elif tok in ("cm", "Tm") and (nums := _numbers(operands, 6)):
            if tok == "cm":
                ctm = _mul(tuple(nums), ctm)
            else:
                tm = tlm = tuple(nums)
        elif tok == "Tf" and len(operands) >= 2 and isinstance(operands[-2], _Name):
            font = fonts.get(str(operands[-2]), _FontDecoder())
        elif tok == "TL" and (nums := _numbers(operands, 1)):
            leading = nums[0]
        elif tok in ("Td", "TD") and (nums := _numbers(operands, 2)):
            if tok == "TD":
                leading = -nums[1]
            move(*nums)
        elif tok in ("T*", "'", '"'):
            move(0.0, -leading)
            if tok != "T*" and isinstance(last, bytes):
                show(font.decode(last))
        elif tok == "Tj" and isinstance(last, bytes):
            show(font.decode(last))
        elif tok == "TJ" and isinstance(last, list):
            show("".join(font.decode(p) for p in last if isinstance(p, bytes)))
        elif tok == "ID":
            end = content.find(b"EI", reader.pos)
            reader.pos = len(content) if end < 0 else end + 2
        operands = []
    return fragments


def extract_rows(data: bytes) -> list[str]:
    """Return the text of every row of every page, top to bottom, left to right."""
    doc = _Document(bytes(data))
    rows: list[str] = []
    for page, resources in doc.pages():
        try:
            content = doc.page_content(page)
        except PdfError:
            continue
        grouped: dict[float, list[tuple[float, int, str]]] = {}
        for y, x, seq, text in _page_fragments(content, _load_fonts(doc, resources)):
            grouped.setdefault(round(y, 2), []).append((x, seq, text))
        for y in sorted(grouped, reverse=True):
            rows.append("".join(text for _, _, text in sorted(grouped[y])))
    return rows