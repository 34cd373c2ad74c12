import html

from asydav.webdav.metadata import list_children, format_http_date
from asydav.webdav.pathresolver import quote_href, join_logical, parent_logical, display_name


class DirectoryRenderer:
    """Renders the HTML page served for GET on a collection."""

    @staticmethod
    def render_page(logical_path:str, children):
        title = html.escape(display_name(logical_path))
        html_content = f'''<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Index of {title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; }}
        table {{ border-collapse: collapse; width: 100%; }}
        th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
        th {{ background-color: #f2f2f2; }}
        tr:hover {{ background-color: #f5f5f5; }}
        .dir {{ font-weight: bold; }}
        a {{ text-decoration: none; color: #0066cc; }}
    </style>
</head>
<body>
    <h1>Index of {title}</h1>
    <table>
        <tr>
            <th>Name</th>
            <th>Size</th>
            <th>Modified</th>
        </tr>
'''
        if logical_path != '/':
            parent_href = quote_href(parent_logical(logical_path), True)
            html_content += f'''        <tr class="parent">
            <td><a href="{html.escape(parent_href)}">..</a></td>
            <td>-</td>
            <td>-</td>
        </tr>
'''

        for child in children:
            href = quote_href(join_logical(logical_path, child.name), child.is_collection)
            if child.is_collection is True:
                css_class = 'dir'
                label = display_name(child.name) + '/'
                size = '-'
            else:
                css_class = 'file'
                label = display_name(child.name)
                size = str(child.size)

            html_content += f'''        <tr class="entry">
            <td class="{css_class}"><a href="{html.escape(href)}">{html.escape(label)}</a></td>
            <td>{size}</td>
            <td>{format_http_date(child.modified_at)}</td>
        </tr>
'''

        html_content += '''    </table>
</body>
</html>
'''
        return html_content.encode('utf-8')

    @staticmethod
    async def render(fs_path:str, logical_path:str, resolver = None):
        """Lists the collection at fs_path. Raises ServerError if the listing cannot be built."""
        children = await list_children(fs_path, resolver)
        return DirectoryRenderer.render_page(logical_path, children)
