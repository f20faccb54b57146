from pygments.style import Style
from pygments.token import Keyword, Name, Number, Punctuation, String


class LogStyle(Style):
    styles = {
        Name.Tag: "ansibrightblue",
        String: "ansigreen",
        String.Double: "ansigreen",
        Number: "ansicyan",
        Keyword.Constant: "ansimagenta",
        Punctuation: "ansibrightblack",
    }
