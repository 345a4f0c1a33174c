"""
JavaScript injected into the app page.

The page is the only network transport: remote calls run as fetch() inside the
page so they reuse its cookies and session. Every builder returns a single
expression suitable for Runtime.evaluate with awaitPromise.
"""
from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

AUTOCOMPLETE_GLOBAL = "__projectDocsAutocomplete"

_IDENT_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def build_rest_call(function_name: str, method: str, url: str, payload: Any | None = None) -> str:
    """Build an in-page fetch() call.

    Non-2xx responses throw `HTTP error! status: N`; an empty body resolves to null.
    """
    if not _IDENT_RE.match(function_name or ""):
        raise ValueError(f"invalid JS function name: {function_name!r}")
    method = (method or "GET").upper()
    include_payload = payload is not None
    body_line = ",\n                body: JSON.stringify(payload)" if include_payload else ""
    args = f"{json.dumps(url)}, {json.dumps(payload)}" if include_payload else json.dumps(url)
    params = "url, payload" if include_payload else "url"
    return f"""
(async function {function_name}({params}) {{
    try {{
        const response = await fetch(url, {{
            method: {json.dumps(method)},
            headers: {{
                'accept': '*/*',
                'content-type': 'application/json'
            }},
            credentials: 'include'{body_line}
        }});

        if (!response.ok) {{
            throw new Error(`HTTP error! status: ${{response.status}}`);
        }}

        const text = await response.text();
        return text ? JSON.parse(text) : null;
    }} catch (error) {{
        console.error('{function_name} failed:', error);
        throw error;
    }}
}})({args})
"""


def build_update_file_names(names: Iterable[str]) -> str:
    names_json = json.dumps([str(n) for n in names])
    return (
        f"(() => {{ if (window.{AUTOCOMPLETE_GLOBAL}) "
        f"{{ window.{AUTOCOMPLETE_GLOBAL}.updateFileNames({names_json}); return true; }} return false; }})()"
    )


# Self-guarding: a second injection on the same document is a no-op.
AUTOCOMPLETE_HELPER = (
    """
(function() {
    if (window.__GLOBAL__) {
        return false;
    }

    const helper = {
        fileNames: [],
        box: null,
        wordStart: 0,
        wordEnd: 0,
        selectedIndex: -1,
        textNode: null,

        ensureBox() {
            if (!this.box) {
                const box = document.createElement('div');
                Object.assign(box.style, {
                    position: 'fixed',
                    backgroundColor: '#1a1915',
                    border: '1px solid #3e3e39',
                    borderRadius: '8px',
                    boxShadow: '0 4px 6px rgba(0, 0, 0, 0.3)',
                    maxHeight: '200px',
                    minWidth: '200px',
                    overflowY: 'auto',
                    display: 'none',
                    zIndex: '1000'
                });
                document.body.appendChild(box);
                this.box = box;
            }
            return this.box;
        },

        isOpen() {
            return !!this.box && this.box.style.display !== 'none';
        },

        currentWord(range) {
            const node = range.startContainer;
            if (!node || node.nodeType !== Node.TEXT_NODE) return null;
            const text = node.textContent || '';
            let start = range.startOffset;
            while (start > 0 && !/\\s/.test(text[start - 1])) start--;
            let end = range.startOffset;
            while (end < text.length && !/\\s/.test(text[end])) end++;
            return { node, start, end, word: text.substring(start, end) };
        },

        update() {
            const selection = window.getSelection();
            if (!selection || !selection.rangeCount) return this.hide();
            const range = selection.getRangeAt(0);
            const found = this.currentWord(range);
            if (!found || found.word.length < 3) return this.hide();

            const needle = found.word.toLowerCase();
            const matches = this.fileNames.filter(name => name.toLowerCase().includes(needle));
            if (!matches.length) return this.hide();

            this.textNode = found.node;
            this.wordStart = found.start;
            this.wordEnd = found.end;
            this.show(matches, range);
        },

        show(matches, range) {
            const box = this.ensureBox();
            const rect = range.getBoundingClientRect();
            box.style.left = `${rect.left}px`;
            box.style.top = `${rect.bottom + 5}px`;
            this.selectedIndex = -1;
            box.replaceChildren();
            matches.forEach(name => {
                const item = document.createElement('div');
                item.className = 'suggestion-item';
                item.textContent = name;
                Object.assign(item.style, {
                    padding: '8px 12px',
                    cursor: 'pointer',
                    color: '#ceccc5',
                    backgroundColor: '#1a1915'
                });
                item.onmouseover = () => { item.style.backgroundColor = '#2f2f2c'; };
                item.onmouseout = () => { item.style.backgroundColor = '#1a1915'; };
                item.onclick = (e) => {
                    e.preventDefault();
                    e.stopPropagation();
                    this.insert(name);
                };
                box.appendChild(item);
            });
            box.style.display = 'block';
        },

        move(step) {
            if (!this.isOpen()) return;
            const items = this.box.getElementsByClassName('suggestion-item');
            if (!items.length) return;
            if (this.selectedIndex >= 0 && this.selectedIndex < items.length) {
                items[this.selectedIndex].style.backgroundColor = '#1a1915';
            }
            this.selectedIndex = (this.selectedIndex + step + items.length) % items.length;
            const selected = items[this.selectedIndex];
            selected.style.backgroundColor = '#2f2f2c';
            selected.scrollIntoView({ block: 'nearest' });
        },

        hide() {
            if (this.box) {
                this.box.style.display = 'none';
            }
            this.selectedIndex = -1;
        },

        insert(name) {
            const node = this.textNode;
            if (!node) return;
            const text = node.textContent || '';
            node.textContent = text.substring(0, this.wordStart) + name + text.substring(this.wordEnd);
            const caret = this.wordStart + name.length;
            const range = document.createRange();
            range.setStart(node, caret);
            range.setEnd(node, caret);
            const selection = window.getSelection();
            selection.removeAllRanges();
            selection.addRange(range);
            this.hide();
        },

        onKeyDown(e) {
            if (!this.isOpen()) return;
            if (e.key === 'Enter' && this.selectedIndex >= 0) {
                e.preventDefault();
                e.stopImmediatePropagation();
                const items = this.box.getElementsByClassName('suggestion-item');
                if (items[this.selectedIndex]) this.insert(items[this.selectedIndex].textContent);
            } else if (e.key === 'ArrowDown') {
                e.preventDefault();
                e.stopImmediatePropagation();
                this.move(1);
            } else if (e.key === 'ArrowUp') {
                e.preventDefault();
                e.stopImmediatePropagation();
                this.move(-1);
            } else if (e.key === 'Escape') {
                this.hide();
            }
        },

        attach() {
            const observer = new MutationObserver(() => {
                const editor = document.querySelector('.ProseMirror');
                if (!editor || editor.__projectDocsAutocomplete) return;
                editor.__projectDocsAutocomplete = true;
                editor.addEventListener('input', () => this.update());
                editor.addEventListener('keydown', (e) => this.onKeyDown(e), true);
                document.addEventListener('click', (e) => {
                    if (this.box && !this.box.contains(e.target)) this.hide();
                });
            });
            observer.observe(document.body, { childList: true, subtree: true });
        },

        updateFileNames(names) {
            this.fileNames = Array.isArray(names) ? names : [];
        }
    };

    Object.defineProperty(window, '__GLOBAL__', {
        value: helper,
        writable: false,
        configurable: false
    });
    helper.attach();
    return true;
})()
"""
).replace("__GLOBAL__", AUTOCOMPLETE_GLOBAL)


__all__ = ["AUTOCOMPLETE_GLOBAL", "AUTOCOMPLETE_HELPER", "build_rest_call", "build_update_file_names"]
